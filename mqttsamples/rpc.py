"""Remote procedure calls over MQTT v5 using response topics and correlation data."""

from __future__ import annotations

import json
import math
import queue
import sys
import threading
from collections import deque
from dataclasses import dataclass

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from mqttsamples.consume import _connect as _connect_sync
from mqttsamples.consume import _subscribe as _subscribe_sync
from mqttsamples.consume import try_reconnect
from mqttsamples.publish import make_client
from mqttsamples.subscribe import _payload_text
from mqttsamples.topic import _connect_v5, _wait

HOST = "localhost"
QOS = 1
REQ_TOPIC_HDR = "requests/math"
REP_TOPIC_HDR = "replies/math"
REQ_TOPIC_FILTER = "requests/math/#"
SERVER_CLIENT_ID = "rpc_math_srvr"
CORR_ID = b"1"
SERVER_RECONNECT_ATTEMPTS = 24
SERVER_RECONNECT_DELAY = 2.5


class RequestError(Exception):
    """Raised when an incoming request cannot be answered."""


@dataclass(frozen=True)
class Reply:
    """A reply to a request: where it goes, what it says and whose it is."""

    topic: str
    payload: str
    correlation_data: bytes


def add(args) -> float:
    """The sum of the arguments."""
    return float(sum(args, 0.0))


def mult(args) -> float:
    """The product of the arguments."""
    return float(math.prod(args, start=1.0))


FUNCTIONS = {"add": add, "mult": mult}


def _format_float(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    if math.isinf(x):
        return "inf" if x > 0 else "-inf"
    if x.is_integer():
        return str(int(x))
    return repr(x)


def _json_number(x: float) -> str:
    return json.dumps(x) if math.isfinite(x) else "null"


def _parse_params(payload):
    try:
        params = json.loads(_payload_text(payload))
    except ValueError as err:
        raise RequestError(f"Malformed request payload: {err}") from None
    if not isinstance(params, list) or not all(
        isinstance(p, (int, float)) and not isinstance(p, bool) for p in params
    ):
        raise RequestError("Request payload is not an array of numbers")
    return [float(p) for p in params]


def handle_request(topic, payload, response_topic, correlation_data):
    """Run the operation named by ``topic`` on the JSON numbers in ``payload``.

    The topic has the form ``requests/math/<operation>``. Returns the
    :class:`Reply` to publish, or ``None`` for an unknown operation.
    Raises :class:`RequestError` if the request cannot be answered.
    """
    if response_topic is None:
        raise RequestError("No response topic provided.")
    if correlation_data is None:
        raise RequestError("No correlation data provided.")
    correlation_data = bytes(correlation_data)

    print(f"\nRequest w/ Reply To: {response_topic}, Correlation ID: {list(correlation_data)}")

    parts = topic.split("/")
    if len(parts) < 3:
        raise RequestError("Malformed request topic")
    fname = parts[2]

    params = _parse_params(payload)

    func = FUNCTIONS.get(fname)
    if func is None:
        print(f"Unknown command: {fname}", file=sys.stderr)
        return None

    print(f"{fname}: {params}")
    x = func(params)
    print(f"    Result: {_format_float(x)}")
    return Reply(response_topic, _json_number(x), correlation_data)


def parse_numbers(args):
    """Parse each argument as a float, silently dropping those that are not."""
    numbers = []
    for arg in args:
        if arg != arg.strip() or "_" in arg:
            continue
        try:
            numbers.append(float(arg))
        except ValueError:
            continue
    return numbers


def request_topic(operation) -> str:
    """The topic on which a request for ``operation`` is published."""
    return f"{REQ_TOPIC_HDR}/{operation}"


def reply_topic(client_id) -> str:
    """The unique topic on which a client receives its replies."""
    return f"{REP_TOPIC_HDR}/{client_id}"


def _reply_properties(correlation_data) -> Properties:
    props = Properties(PacketTypes.PUBLISH)
    props.CorrelationData = correlation_data
    return props


def _serve_one(client, msg):
    props = getattr(msg, "properties", None)
    try:
        reply = handle_request(
            msg.topic,
            msg.payload,
            getattr(props, "ResponseTopic", None),
            getattr(props, "CorrelationData", None),
        )
    except RequestError as err:
        print(f"Error: {err}", file=sys.stderr)
        return
    if reply is not None:
        client.publish(
            reply.topic,
            reply.payload,
            qos=QOS,
            properties=_reply_properties(reply.correlation_data),
        )


def _serve(client, pending):
    while True:
        rc = client.loop(1.0)
        while pending:
            _serve_one(client, pending.popleft())
        if rc != mqtt.MQTT_ERR_SUCCESS:
            if client.is_connected() or not try_reconnect(
                client, SERVER_RECONNECT_ATTEMPTS, SERVER_RECONNECT_DELAY
            ):
                return


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def server_main(argv=None) -> int:
    """Serve math requests until the connection is lost for good."""
    _args(argv)
    try:
        client, address = make_client(HOST, SERVER_CLIENT_ID, protocol=mqtt.MQTTv5)
    except ValueError as err:
        print(f"Error creating the client: {err}", file=sys.stderr)
        return 1

    pending = deque()
    client.on_message = lambda _client, _userdata, msg: pending.append(msg)

    try:
        session_present = _connect_sync(client, address, 60, clean_start=False)
    except OSError as err:
        print(f"Unable to connect: {err}", file=sys.stderr)
        return 1

    if not session_present:
        print("Subscribing to math requests")
        try:
            _subscribe_sync(client, REQ_TOPIC_FILTER, qos=QOS)
        except OSError as err:
            print(f"Error: {err}", file=sys.stderr)
            client.disconnect()
            return 1

    print("Processing requests...")
    try:
        _serve(client, pending)
    except KeyboardInterrupt:
        pass

    if client.is_connected():
        client.disconnect()
    return 0


def _subscribe_and_wait(client, topic, timeout=10.0):
    acked = threading.Event()
    acks = set()

    def on_subscribe(_client, _userdata, mid, *_rest):
        acks.add(mid)
        acked.set()

    client.on_subscribe = on_subscribe
    rc, mid = client.subscribe(topic, QOS)
    if rc != mqtt.MQTT_ERR_SUCCESS:
        raise ConnectionError(mqtt.error_string(rc))
    while mid not in acks:
        if not acked.wait(timeout):
            raise TimeoutError("timed out waiting for the subscription")
        acked.clear()


def _shutdown(client):
    client.disconnect()
    client.loop_stop()


def main(argv=None) -> int:
    """Send one math request and print the result."""
    args = _args(argv)
    if len(args) < 3:
        print("USAGE: rpc_math_cli <add|mult> <num1> <num2> [... numN]")
        return 1

    try:
        client, address = make_client(HOST, "", protocol=mqtt.MQTTv5)
    except ValueError as err:
        print(f"Error creating the client: {err}", file=sys.stderr)
        return 1

    replies = queue.Queue()
    client.on_message = lambda _client, _userdata, msg: replies.put(msg)

    try:
        conn_props = _connect_v5(client, address)
    except OSError as err:
        print(f"Unable to connect: {err}", file=sys.stderr)
        return 1
    client.on_disconnect = lambda *_args: replies.put(None)

    client_id = getattr(conn_props, "AssignedClientIdentifier", None)
    if not client_id:
        print("Unable to retrieve Client ID", file=sys.stderr)
        _shutdown(client)
        return 1

    reply_to = reply_topic(client_id)
    try:
        _subscribe_and_wait(client, reply_to)
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        _shutdown(client)
        return 1

    props = Properties(PacketTypes.PUBLISH)
    props.ResponseTopic = reply_to
    props.CorrelationData = CORR_ID
    payload = json.dumps(parse_numbers(args[1:]), separators=(",", ":"))

    try:
        _wait(client.publish(request_topic(args[0]), payload, qos=QOS, properties=props))
    except (OSError, RuntimeError, ValueError) as err:
        print(f"Error sending message: {err}", file=sys.stderr)
        _shutdown(client)
        return 2

    msg = replies.get()
    if msg is None:
        print("Error receiving reply.", file=sys.stderr)
    else:
        reply_corr_id = getattr(getattr(msg, "properties", None), "CorrelationData", None)
        if reply_corr_id == CORR_ID:
            try:
                ret = float(json.loads(_payload_text(msg.payload)))
            except (TypeError, ValueError) as err:
                print(f"Error: {err}", file=sys.stderr)
            else:
                print(_format_float(ret))
        else:
            shown = list(reply_corr_id) if reply_corr_id is not None else None
            print(f"Unknown response for {shown}", file=sys.stderr)

    _shutdown(client)
    return 0


if __name__ == "__main__":
    sys.exit(main())