"""Publishing repeatedly on one topic, optionally through an MQTT v5 topic alias."""

from __future__ import annotations

import sys
import threading

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties
from paho.mqtt.subscribeoptions import SubscribeOptions

from mqttsamples.publish import (
    DEFAULT_URI,
    _connect_blocking,
    _disconnect,
    make_client,
)

QOS = 1
TOPIC_ALIAS = 1
TOPIC_NAME = "test/very/long/topic_name/just/to_say_hello"
_MAX_ALIAS = 0xFFFF


class Topic:
    """A topic name bound to a client, a QoS and a retain flag."""

    def __init__(self, client, name, qos=QOS, retained=False):
        self.client = client
        self.name = name
        self.qos = qos
        self.retained = retained
        self.alias = 0

    def _publish(self, topic, payload, properties=None):
        return self.client.publish(
            topic,
            payload,
            qos=self.qos,
            retain=self.retained,
            properties=properties,
        )

    @staticmethod
    def _alias_properties(alias):
        props = Properties(PacketTypes.PUBLISH)
        props.TopicAlias = alias
        return props

    def publish(self, payload):
        """Publish ``payload``, using the alias in place of the name if one is set."""
        if self.alias:
            return self._publish("", payload, self._alias_properties(self.alias))
        return self._publish(self.name, payload)

    def publish_with_alias(self, alias, payload):
        """Publish with the full name and set ``alias`` for later publishes.

        An alias of zero removes any alias; later publishes then use the name.
        """
        if not 0 <= alias <= _MAX_ALIAS:
            raise ValueError(f"topic alias out of range: {alias}")
        self.alias = alias
        if alias:
            return self._publish(self.name, payload, self._alias_properties(alias))
        return self._publish(self.name, payload)

    def subscribe(self, no_local=False):
        """Subscribe to the topic; ``no_local`` stops our own messages coming back."""
        if no_local:
            options = SubscribeOptions(qos=self.qos, noLocal=True)
            return self.client.subscribe(self.name, options=options)
        return self.client.subscribe(self.name, self.qos)


def _wait(info, timeout=10.0):
    """Block until a publish completes, raising if it fails."""
    if info.rc != mqtt.MQTT_ERR_SUCCESS:
        raise ConnectionError(mqtt.error_string(info.rc))
    info.wait_for_publish(timeout)
    if not info.is_published():
        raise TimeoutError("timed out waiting for the publish to complete")


def _connect_v5(client, address, timeout=10.0):
    """Connect with a clean start and return the properties of the CONNACK."""
    connected = threading.Event()
    outcome = {}

    def on_connect(_client, _userdata, _flags, reason, properties=None, *_rest):
        outcome["reason"] = reason
        outcome["properties"] = properties
        connected.set()

    client.on_connect = on_connect
    client.connect(address.host, address.port, 60, clean_start=True)
    client.loop_start()
    if not connected.wait(timeout):
        client.loop_stop()
        raise TimeoutError("timed out waiting for the connection")
    if outcome["reason"] != 0:
        client.loop_stop()
        raise ConnectionError(f"connection refused: {outcome['reason']}")
    return outcome["properties"]


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def main(argv=None) -> int:
    """Publish five messages on 'test' through a Topic object."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = make_client(host)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        _connect_blocking(client, address)
    except OSError as err:
        print(f"Unable to connect: {err}")
        return 1

    print("Publishing messages on the 'test' topic")
    topic = Topic(client, "test", QOS)
    for _ in range(5):
        try:
            _wait(topic.publish("Hello there"))
        except (OSError, RuntimeError, ValueError) as err:
            print(f"Error sending message: {err}")
            break

    _disconnect(client)
    return 0


def alias_main(argv=None) -> int:
    """Publish on a long topic name using an MQTT v5 topic alias."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = make_client(host, protocol=mqtt.MQTTv5)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        properties = _connect_v5(client, address)
    except OSError as err:
        print(f"Unable to connect: {err}", file=sys.stderr)
        return 1

    max_aliases = getattr(properties, "TopicAliasMaximum", 0) or 0
    if not max_aliases:
        print("The server doesn't support Topic Aliases.", file=sys.stderr)
        _disconnect(client)
        return 2
    print(f"The server supports up to {max_aliases} aliases.")

    print("Publishing messages on the 'test' topic")
    topic = Topic(client, TOPIC_NAME, QOS)
    try:
        _wait(topic.publish_with_alias(TOPIC_ALIAS, "Hello. Here's an alias."))
        for _ in range(4):
            _wait(topic.publish("Hello there"))
        _wait(topic.publish_with_alias(0, "Hello. Removed the alias."))
        _wait(topic.publish("No alias here"))
        _disconnect(client)
    except (OSError, RuntimeError, ValueError) as err:
        print(err, file=sys.stderr)
        client.loop_stop()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())