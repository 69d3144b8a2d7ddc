"""Simple MQTT publishers: asynchronous, synchronous and over websockets."""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

DEFAULT_URI = "tcp://localhost:1883"
DEFAULT_WS_URI = "ws://localhost:8080"
TOPIC = "test"

_DEFAULT_PORTS = {
    "tcp": 1883,
    "mqtt": 1883,
    "ssl": 8883,
    "mqtts": 8883,
    "ws": 80,
    "wss": 443,
}
_TLS_SCHEMES = frozenset({"ssl", "mqtts", "wss"})
_WS_SCHEMES = frozenset({"ws", "wss"})
_DEFAULT_WS_PATH = "/mqtt"
# Proxy type number used by the SOCKS layer for plain HTTP proxies.
_HTTP_PROXY_TYPE = 3


@dataclass(frozen=True)
class BrokerAddress:
    """Where a broker lives and how to reach it."""

    scheme: str
    host: str
    port: int
    path: str = ""

    @property
    def transport(self) -> str:
        return "websockets" if self.scheme in _WS_SCHEMES else "tcp"

    @property
    def uses_tls(self) -> bool:
        return self.scheme in _TLS_SCHEMES


def parse_broker_uri(uri: str) -> BrokerAddress:
    """Parse a server URI such as ``tcp://host:1883``; a bare host means TCP."""
    if "://" not in uri:
        uri = f"tcp://{uri}"
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"unsupported URI scheme: {parts.scheme!r}")
    if not parts.hostname:
        raise ValueError(f"no host in server URI: {uri!r}")
    port = parts.port or _DEFAULT_PORTS[scheme]
    path = ""
    if scheme in _WS_SCHEMES:
        path = parts.path or _DEFAULT_WS_PATH
    return BrokerAddress(scheme, parts.hostname, port, path)


def make_client(uri, client_id="", protocol=mqtt.MQTTv311):
    """Create a client configured for ``uri``; returns ``(client, address)``."""
    address = parse_broker_uri(uri)
    kwargs = {"client_id": client_id, "protocol": protocol, "transport": address.transport}
    api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if api_version is not None:
        client = mqtt.Client(api_version.VERSION2, **kwargs)
    else:
        client = mqtt.Client(**kwargs)
    if address.transport == "websockets":
        client.ws_set_options(path=address.path)
    if address.uses_tls:
        client.tls_set()
    return client, address


def _connect_blocking(client, address, keepalive=60, timeout=10.0):
    """Connect, start the network loop and wait for the broker's answer."""
    connected = threading.Event()
    outcome = {}

    def on_connect(_client, _userdata, _flags, reason, *_rest):
        outcome["reason"] = reason
        connected.set()

    client.on_connect = on_connect
    client.connect(address.host, address.port, keepalive)
    client.loop_start()
    if not connected.wait(timeout):
        client.loop_stop()
        raise TimeoutError("timed out waiting for the connection")
    reason = outcome["reason"]
    if reason != 0:
        client.loop_stop()
        raise ConnectionError(f"connection refused: {reason}")


def _publish_and_wait(client, topic, payload, qos, timeout=None):
    """Publish one message and block until it has been delivered."""
    info = client.publish(topic, payload, qos=qos)
    if info.rc != mqtt.MQTT_ERR_SUCCESS:
        raise ConnectionError(mqtt.error_string(info.rc))
    info.wait_for_publish(timeout)
    if not info.is_published():
        raise TimeoutError("timed out waiting for the publish to complete")
    return info.mid


def _disconnect(client):
    client.disconnect()
    client.loop_stop()


def parse_ws_args(argv):
    """Return ``(host, proxy)`` from the websocket publisher's arguments."""
    args = iter(argv)
    host = next(args, DEFAULT_WS_URI)
    proxy = next(args, "")
    return host, proxy


def _args(argv):
    return sys.argv[1:] if argv is None else list(argv)


def main(argv=None) -> int:
    """Connect, publish one QoS 1 message on 'test' and disconnect."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = make_client(host)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        print("Connecting to the MQTT server")
        _connect_blocking(client, address)
        print(f"Publishing a message on the topic '{TOPIC}'")
        _publish_and_wait(client, TOPIC, "Hello MQTT world!", 1)
        print("Disconnecting")
        _disconnect(client)
    except (OSError, RuntimeError, ValueError) as err:
        print(err, file=sys.stderr)
        client.loop_stop()
        return 1
    return 0


def sync_main(argv=None) -> int:
    """Blocking publisher that uses five second timeouts."""
    args = _args(argv)
    host = args[0] if args else DEFAULT_URI
    timeout = 5.0
    try:
        client, address = make_client(host)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        _connect_blocking(client, address, timeout=timeout)
    except OSError as err:
        print(f"Unable to connect: {err}")
        return 1
    try:
        _publish_and_wait(client, TOPIC, "Hello synchronous world!", 1, timeout)
    except (OSError, RuntimeError, ValueError) as err:
        print(f"Error sending message: {err}")
    _disconnect(client)
    return 0


def ws_main(argv=None) -> int:
    """Publish one message over a websocket connection, optionally via a proxy."""
    host, proxy = parse_ws_args(_args(argv))
    try:
        client, address = make_client(host)
        if proxy:
            proxy_parts = urlsplit(proxy if "://" in proxy else f"http://{proxy}")
            client.proxy_set(
                proxy_type=_HTTP_PROXY_TYPE,
                proxy_addr=proxy_parts.hostname,
                proxy_port=proxy_parts.port or 80,
            )
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        _connect_blocking(client, address, keepalive=30)
    except OSError as err:
        print(f"Unable to connect: {err}")
        return 1
    print(f"Publishing a message on the '{TOPIC}' topic")
    try:
        _publish_and_wait(client, TOPIC, "Hello MQTT world!", 0)
    except (OSError, RuntimeError, ValueError) as err:
        print(f"Error sending message: {err}")
    _disconnect(client)
    return 0


if __name__ == "__main__":
    sys.exit(main())