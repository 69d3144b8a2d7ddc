"""Synchronous consumers that read messages from a queue and reconnect by hand."""

from __future__ import annotations

import sys
import time
from collections import deque

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from mqttsamples.publish import DEFAULT_URI, parse_broker_uri
from mqttsamples.subscribe import _payload_text, format_message

SUBSCRIPTIONS = ("test", "hello")
SUBSCRIPTION_QOS = (1, 1)
RECONNECT_ATTEMPTS = 12
RECONNECT_DELAY = 5.0
_MAX_SUBSCRIPTION_ID = 268_435_455
_MQTT_V311_LEVEL = 4
_MQTT_V5_LEVEL = 5


def try_reconnect(client, attempts=RECONNECT_ATTEMPTS, delay=RECONNECT_DELAY, sleep=time.sleep):
    """Try to reconnect up to ``attempts`` times, pausing ``delay`` before each.

    Returns True as soon as a reconnect succeeds, False if none did.
    """
    print("Connection lost. Waiting to retry connection")
    for _ in range(attempts):
        sleep(delay)
        try:
            rc = client.reconnect()
        except OSError:
            continue
        if rc in (None, mqtt.MQTT_ERR_SUCCESS):
            print("Successfully reconnected")
            return True
    print("Unable to reconnect after several attempts.")
    return False


def data_handler(msg) -> bool:
    """Print a data message; always keeps the consumer running."""
    print(format_message(msg.topic, msg.payload))
    return True


def command_handler(msg) -> bool:
    """Handle a command message; returns False when told to exit."""
    if _payload_text(msg.payload) == "exit":
        print("Exit command received")
        return False
    return True


HANDLERS = (data_handler, command_handler)


def _subscription_id(msg) -> int:
    props = getattr(msg, "properties", None)
    value = getattr(props, "SubscriptionIdentifier", None)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        raise LookupError("No Subscription ID")
    return int(value)


def dispatch(msg, handlers=HANDLERS):
    """Pass ``msg`` to the handler chosen by its subscription identifier.

    Identifier ``n`` selects ``handlers[n - 1]``; the handler's result is
    returned. A missing or unknown identifier raises ``LookupError``.
    """
    sub_id = _subscription_id(msg)
    if not 1 <= sub_id <= len(handlers):
        raise LookupError(f"no handler for subscription ID {sub_id}")
    return handlers[sub_id - 1](msg)


def sub_id_properties(sub_id) -> Properties:
    """SUBSCRIBE properties holding a single subscription identifier."""
    if not 1 <= sub_id <= _MAX_SUBSCRIPTION_ID:
        raise ValueError(f"subscription identifier out of range: {sub_id}")
    props = Properties(PacketTypes.SUBSCRIBE)
    props.SubscriptionIdentifier = sub_id
    return props


def _new_client(uri, client_id, protocol, will_topic, will_payload, clean_session=None):
    address = parse_broker_uri(uri)
    kwargs = {"client_id": client_id, "protocol": protocol, "transport": address.transport}
    if protocol != mqtt.MQTTv5:
        kwargs["clean_session"] = clean_session
    api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if api_version is not None:
        client = mqtt.Client(api_version.VERSION2, **kwargs)
    else:
        client = mqtt.Client(**kwargs)
    if address.transport == "websockets":
        client.ws_set_options(path=address.path)
    if address.uses_tls:
        client.tls_set()
    client.will_set(will_topic, will_payload, qos=0)
    return client, address


def _pump(client, ready, timeout):
    """Run the network loop until ``ready()`` holds or ``timeout`` passes."""
    deadline = time.monotonic() + timeout
    while not ready():
        if time.monotonic() > deadline:
            raise TimeoutError("timed out waiting for the broker")
        rc = client.loop(0.1)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(mqtt.error_string(rc))


def _session_present(flags) -> bool:
    present = getattr(flags, "session_present", None)
    if present is None and isinstance(flags, dict):
        present = flags.get("session present", 0)
    return bool(present)


def _connect(client, address, keepalive, timeout=10.0, **connect_kwargs) -> bool:
    """Connect and wait for the CONNACK; returns whether a session was present."""
    outcome = {}

    def on_connect(_client, _userdata, flags, reason, *_rest):
        outcome["flags"] = flags
        outcome["reason"] = reason

    client.on_connect = on_connect
    client.connect(address.host, address.port, keepalive, **connect_kwargs)
    _pump(client, lambda: "reason" in outcome, timeout)
    if outcome["reason"] != 0:
        raise ConnectionError(f"connection refused: {outcome['reason']}")
    return _session_present(outcome["flags"])


def _subscribe(client, topic, timeout=10.0, **kwargs):
    """Subscribe and wait for the SUBACK; returns the granted QoS values."""
    acks = {}

    def on_subscribe(_client, _userdata, mid, granted, *_rest):
        acks[mid] = granted

    client.on_subscribe = on_subscribe
    rc, mid = client.subscribe(topic, **kwargs)
    if rc != mqtt.MQTT_ERR_SUCCESS:
        raise ConnectionError(mqtt.error_string(rc))
    _pump(client, lambda: mid in acks, timeout)
    return [getattr(q, "value", q) for q in acks[mid]]


def _consume(client, pending, handle):
    """Hand queued messages to ``handle`` until it returns False or we give up."""
    while True:
        rc = client.loop(1.0)
        while pending:
            if not handle(pending.popleft()):
                return
        if rc != mqtt.MQTT_ERR_SUCCESS:
            if client.is_connected() or not try_reconnect(client):
                return


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def main(argv=None) -> int:
    """Consume messages on 'test' and 'hello' with a persistent session."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = _new_client(
            host,
            "sync_consumer",
            mqtt.MQTTv311,
            "test",
            "Sync consumer lost connection",
            clean_session=False,
        )
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1

    pending = deque()
    client.on_message = lambda _client, _userdata, msg: pending.append(msg)

    print("Connecting to the MQTT broker...")
    try:
        session_present = _connect(client, address, 20)
    except OSError as err:
        print(f"Error connecting to the broker: {err}")
        return 1
    print(f"Connected to: '{host}' with MQTT version {_MQTT_V311_LEVEL}")

    if not session_present:
        print(f"Subscribing to topics, with requested QoS: {list(SUBSCRIPTION_QOS)}...")
        try:
            granted = _subscribe(client, list(zip(SUBSCRIPTIONS, SUBSCRIPTION_QOS)))
        except OSError as err:
            print(f"Error subscribing to topics: {err}")
            client.disconnect()
            return 1
        print(f"QoS granted: {granted}")

    print("Waiting for messages...")
    try:
        _consume(client, pending, data_handler)
    except KeyboardInterrupt:
        pass

    if client.is_connected():
        print("Disconnecting")
        client.unsubscribe(list(SUBSCRIPTIONS))
        client.disconnect()
    print("Exiting")
    return 0


def v5_main(argv=None) -> int:
    """MQTT v5 consumer that routes messages by subscription identifier."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = _new_client(
            host,
            "sync_cons_v5",
            mqtt.MQTTv5,
            "lwt",
            "Sync consumer v5 lost connection",
        )
    except ValueError as err:
        print(f"Error creating the client: {err}", file=sys.stderr)
        return 1

    pending = deque()
    client.on_message = lambda _client, _userdata, msg: pending.append(msg)

    try:
        session_present = _connect(client, address, 60, clean_start=False)
    except OSError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    print(f"Connected to: '{host}' with MQTT version {_MQTT_V5_LEVEL}")

    if not session_present:
        print("Subscribing to topics...")
        try:
            _subscribe(client, "data/#", qos=0, properties=sub_id_properties(1))
            _subscribe(client, "command", qos=1, properties=sub_id_properties(2))
        except OSError as err:
            print(f"Error: {err}", file=sys.stderr)
            client.disconnect()
            return 1

    def handle(msg):
        try:
            return dispatch(msg, HANDLERS)
        except LookupError as err:
            print(f"Error: {err}", file=sys.stderr)
            return True

    print("Waiting for messages...")
    try:
        _consume(client, pending, handle)
    except KeyboardInterrupt:
        pass

    if client.is_connected():
        print("Disconnecting")
        client.disconnect()
    print("Exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())