"""A group chat over MQTT v5, one topic per group."""

from __future__ import annotations

import os
import sys
import threading

import paho.mqtt.client as mqtt
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

try:
    from paho.mqtt.reasoncodes import ReasonCode
except ImportError:
    from paho.mqtt.reasoncodes import ReasonCodes as ReasonCode

from mqttsamples.publish import make_client
from mqttsamples.subscribe import _payload_text
from mqttsamples.topic import Topic, _wait

HOST = "localhost"
QOS = 1
KEEP_ALIVE = 20
WILL_DELAY = 10
SESSION_EXPIRY = 60


def chat_topic(group) -> str:
    """The topic on which a group's messages travel."""
    return f"chat/{group}"


def chat_client_id(user, group) -> str:
    """A client ID unique to a user in a group."""
    return f"chat-{user}-{group}"


def format_chat(user, text) -> str:
    """A chat line as ``user: text``."""
    return f"{user}: {text}"


def joined_text(user) -> str:
    return f"<<< {user} joined the group >>>"


def left_text(user) -> str:
    return f"<<< {user} left the group >>>"


def read_chat_lines(stream):
    """Yield trimmed lines from ``stream``, stopping at an empty line or EOF."""
    for line in stream:
        text = line.strip()
        if not text:
            return
        yield text


def _connect(client, address, properties, timeout=10.0):
    connected = threading.Event()
    outcome = {}

    def on_connect(_client, _userdata, _flags, reason, *_rest):
        outcome["reason"] = reason
        connected.set()

    client.on_connect = on_connect
    client.connect(
        address.host, address.port, KEEP_ALIVE, clean_start=False, properties=properties
    )
    client.loop_start()
    if not connected.wait(timeout):
        client.loop_stop()
        raise TimeoutError("timed out waiting for the connection")
    if outcome["reason"] != 0:
        client.loop_stop()
        raise ConnectionError(f"connection refused: {outcome['reason']}")


def _subscribe(client, topic, timeout=10.0):
    acked = threading.Event()
    acks = set()

    def on_subscribe(_client, _userdata, mid, *_rest):
        acks.add(mid)
        acked.set()

    client.on_subscribe = on_subscribe
    rc, mid = topic.subscribe(no_local=True)
    if rc != mqtt.MQTT_ERR_SUCCESS:
        raise ConnectionError(mqtt.error_string(rc))
    while mid not in acks:
        if not acked.wait(timeout):
            raise TimeoutError("timed out waiting for the subscription")
        acked.clear()


def main(argv=None) -> int:
    """Join a chat group, relay console lines to it, and leave on an empty line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print("USAGE: chat <user> <group>")
        return 1
    user, group = args
    topic_name = chat_topic(group)

    try:
        client, address = make_client(HOST, chat_client_id(user, group), protocol=mqtt.MQTTv5)
    except ValueError as err:
        print(f"Error creating the client: {err}", file=sys.stderr)
        return 1

    # The group hears we left only if we fail to come back within the delay.
    will_props = Properties(PacketTypes.WILLMESSAGE)
    will_props.WillDelayInterval = WILL_DELAY
    client.will_set(topic_name, left_text(user), qos=QOS, properties=will_props)

    connect_props = Properties(PacketTypes.CONNECT)
    connect_props.SessionExpiryInterval = SESSION_EXPIRY

    leaving = threading.Event()

    def on_disconnect(*_args):
        if not leaving.is_set():
            print("*** Connection lost ***")
            sys.stdout.flush()
            os._exit(2)

    def on_message(_client, _userdata, msg):
        print(_payload_text(msg.payload))

    client.on_message = on_message
    topic = Topic(client, topic_name, QOS)

    try:
        _connect(client, address, connect_props)
    except OSError as err:
        print(f"Unable to connect: {err}", file=sys.stderr)
        return 1
    client.on_disconnect = on_disconnect

    try:
        print(f"Joining the group '{group}'...")
        _subscribe(client, topic)
        _wait(topic.publish(joined_text(user)))
    except (OSError, RuntimeError, ValueError) as err:
        print(f"Error: {err}", file=sys.stderr)
        leaving.set()
        client.disconnect()
        client.loop_stop()
        return 1

    for line in read_chat_lines(sys.stdin):
        try:
            _wait(topic.publish(format_chat(user, line)))
        except (OSError, RuntimeError, ValueError) as err:
            print(f"Error: {err}", file=sys.stderr)
            break

    leaving.set()
    if client.is_connected():
        print("Leaving the group...")
        client.disconnect(
            reasoncode=ReasonCode(PacketTypes.DISCONNECT, "Disconnect with will message")
        )
    client.loop_stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())