"""MQTT subscribers that print incoming messages and reconnect by hand."""

from __future__ import annotations

import sys
import threading
import time

import paho.mqtt.client as mqtt

from mqttsamples.publish import DEFAULT_URI, parse_broker_uri

TOPICS = ("test", "hello")
DFLT_TOPICS = ("requests/subscription/add", "test", "hello")
ADD_TOPIC = "requests/subscription/add"
QOS = 1
WILL_TOPIC = "test"
WILL_PAYLOAD = "Async subscriber lost connection"


class TopicRegistry:
    """A thread-safe, growing list of subscription topics."""

    def __init__(self, topics=DFLT_TOPICS) -> None:
        self._lock = threading.RLock()
        self._topics = list(topics)

    def snapshot(self):
        """A copy of the current topics, in the order they were added."""
        with self._lock:
            return list(self._topics)

    def add(self, topic):
        """Append ``topic`` to the registry."""
        with self._lock:
            self._topics.append(topic)

    def __len__(self):
        with self._lock:
            return len(self._topics)

    def __contains__(self, topic):
        with self._lock:
            return topic in self._topics


def _payload_text(payload) -> str:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


def format_message(topic, payload) -> str:
    """Render a message as ``topic - payload``; bad UTF-8 is replaced."""
    return f"{topic} - {_payload_text(payload)}"


def handle_dynamic_message(registry, client, topic, payload):
    """Print a message, or subscribe to a new topic when asked to.

    A message on the subscription-request topic carries a topic name; the
    client subscribes to it and it joins ``registry``. That topic is
    returned; any other message is printed and ``None`` is returned.
    """
    if topic != ADD_TOPIC:
        print(format_message(topic, payload))
        return None
    new_topic = _payload_text(payload)
    print(f"Adding topic: {new_topic}")
    client.subscribe(new_topic, QOS)
    registry.add(new_topic)
    return new_topic


def _new_client(uri, client_id, clean_session):
    address = parse_broker_uri(uri)
    kwargs = {
        "client_id": client_id,
        "clean_session": clean_session,
        "protocol": mqtt.MQTTv311,
        "transport": address.transport,
    }
    api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if api_version is not None:
        client = mqtt.Client(api_version.VERSION2, **kwargs)
    else:
        client = mqtt.Client(**kwargs)
    if address.transport == "websockets":
        client.ws_set_options(path=address.path)
    if address.uses_tls:
        client.tls_set()
    client.will_set(WILL_TOPIC, WILL_PAYLOAD, qos=QOS)
    return client, address


def _reconnect(client, delay, sleep_first):
    """Keep trying to reconnect, pausing ``delay`` seconds between tries."""
    if sleep_first:
        time.sleep(delay)
    while True:
        try:
            client.reconnect()
            return
        except OSError as err:
            print(f"Error reconnecting: {err}")
            time.sleep(delay)


def _run_network(client, delay, sleep_first, lost_message):
    """Drive the network loop forever, reconnecting whenever it fails."""
    while True:
        rc = client.loop(timeout=1.0)
        if rc == mqtt.MQTT_ERR_SUCCESS:
            continue
        print(lost_message)
        _reconnect(client, delay, sleep_first)


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def main(argv=None) -> int:
    """Subscribe with a persistent session and print messages until interrupted."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = _new_client(host, "async_subscribe", clean_session=False)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1

    state = {"subscribed": False}

    def on_connect(cli, _userdata, _flags, reason, *_rest):
        if reason != 0:
            print(f"Connection refused: {reason}")
            return
        if not state["subscribed"]:
            print(f"Subscribing to topics: {list(TOPICS)}")
            cli.subscribe([(topic, QOS) for topic in TOPICS])
            state["subscribed"] = True
            print("Waiting for messages...")

    def on_message(_cli, _userdata, msg):
        print(format_message(msg.topic, msg.payload))

    client.on_connect = on_connect
    client.on_message = on_message

    print("Connecting to the MQTT server...")
    try:
        client.connect(address.host, address.port, 30)
    except OSError as err:
        print(err, file=sys.stderr)
        return 1

    # No clean disconnect: when interrupted, the broker sees an unexpected
    # drop and publishes the last will.
    try:
        _run_network(
            client,
            delay=1.0,
            sleep_first=False,
            lost_message="Lost connection. Attempting reconnect.",
        )
    except KeyboardInterrupt:
        pass
    return 0


def _callback_subscriber(host, client_id, on_connected, on_message) -> int:
    """Run a clean-session subscriber that resubscribes on every connect."""
    try:
        client, address = _new_client(host, client_id, clean_session=True)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1

    def on_connect(cli, _userdata, _flags, reason, *_rest):
        if reason != 0:
            print(f"Connection attempt failed with error code {reason}.\n")
            return
        print("Connected.")
        print("Connection succeeded")
        on_connected(cli)

    client.on_connect = on_connect
    client.on_message = on_message

    print("Connecting to the MQTT server...")
    try:
        try:
            client.connect(address.host, address.port, 20)
        except OSError as err:
            print(f"Connection attempt failed with error code {err}.\n")
            _reconnect(client, 2.5, sleep_first=True)
        _run_network(
            client,
            delay=2.5,
            sleep_first=True,
            lost_message="Connection lost. Attempting reconnect.",
        )
    except KeyboardInterrupt:
        pass
    return 0


def legacy_main(argv=None) -> int:
    """Callback-driven subscriber that resubscribes after each reconnect."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI

    def on_connected(cli):
        cli.subscribe([(topic, QOS) for topic in TOPICS])
        print(f"Subscribing to topics: {list(TOPICS)}")

    def on_message(_cli, _userdata, msg):
        print(format_message(msg.topic, msg.payload))

    return _callback_subscriber(host, "async_subscribe", on_connected, on_message)


def dyn_main(argv=None) -> int:
    """Subscriber whose topic list grows through subscription requests."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    registry = TopicRegistry()

    def on_connected(cli):
        topics = registry.snapshot()
        print(f"Subscribing to topics: {topics}")
        if topics:
            cli.subscribe([(topic, QOS) for topic in topics])

    def on_message(cli, _userdata, msg):
        handle_dynamic_message(registry, cli, msg.topic, msg.payload)

    return _callback_subscriber(host, "dyn_subscribe", on_connected, on_message)


if __name__ == "__main__":
    sys.exit(main())