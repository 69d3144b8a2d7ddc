"""An in-memory key/value store for a client's in-flight messages."""

from __future__ import annotations

import logging
import sys
import threading

from mqttsamples.publish import (
    DEFAULT_URI,
    _connect_blocking,
    _disconnect,
    make_client,
)

log = logging.getLogger(__name__)

QOS = 1
CLIENT_ID = "async_persist_pub"


class PersistenceError(Exception):
    """Raised when a key is missing from the persistence store."""


class MemPersistence:
    """Persistence store kept in a dict of byte strings."""

    def __init__(self) -> None:
        self.name = ""
        self.is_open = False
        self._map: dict[str, bytes] = {}

    def open(self, client_id, server_uri):
        """Open the store for a client/server combination."""
        self.name = f"{client_id}-{server_uri}"
        self.is_open = True
        log.debug("Client persistence [%s]: open", self.name)

    def close(self):
        """Close the store; the data stays in memory."""
        log.debug("Client persistence [%s]: close", self.name)
        self.is_open = False

    def put(self, key, buffers):
        """Store the concatenation of ``buffers`` under ``key``."""
        log.debug("Client persistence [%s]: put key '%s'", self.name, key)
        self._map[key] = b"".join(bytes(buf) for buf in buffers)

    def get(self, key):
        log.debug("Client persistence [%s]: get key '%s'", self.name, key)
        try:
            return self._map[key]
        except KeyError:
            raise PersistenceError(f"no such key: {key!r}") from None

    def remove(self, key):
        log.debug("Client persistence [%s]: remove key '%s'", self.name, key)
        try:
            del self._map[key]
        except KeyError:
            raise PersistenceError(f"no such key: {key!r}") from None

    def keys(self):
        log.debug("Client persistence [%s]: keys", self.name)
        keys = list(self._map)
        if keys:
            log.debug("Found keys: %s", keys)
        return keys

    def clear(self):
        log.debug("Client persistence [%s]: clear", self.name)
        self._map.clear()

    def contains_key(self, key):
        log.debug("Client persistence [%s]: contains key '%s'", self.name, key)
        return key in self._map

    def __contains__(self, key):
        return key in self._map

    def __len__(self):
        return len(self._map)


def _message_key(mid: int) -> str:
    return f"s-{mid}"


def main(argv=None) -> int:
    """Publish one message, holding it in the store until it is acknowledged."""
    args = sys.argv[1:] if argv is None else list(argv)
    host = args[0] if args else DEFAULT_URI
    logging.basicConfig()

    print("Creating the MQTT client.")
    try:
        client, address = make_client(host, CLIENT_ID)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1

    store = MemPersistence()
    store.open(CLIENT_ID, host)
    lock = threading.Lock()
    delivered = threading.Event()

    def on_publish(_client, _userdata, mid, *_rest):
        with lock:
            key = _message_key(mid)
            if store.contains_key(key):
                store.remove(key)
        delivered.set()

    client.on_publish = on_publish

    print("Connecting to MQTT broker.")
    try:
        _connect_blocking(client, address)
    except OSError as err:
        print(f"Unable to connect: {err}")
        store.close()
        return 1

    print("Publishing a message to 'test' topic")
    topic, payload = "test", "Hello world!"
    with lock:
        info = client.publish(topic, payload, qos=QOS)
        store.put(_message_key(info.mid), [topic.encode(), payload.encode()])
    if not delivered.wait(10.0):
        print("Error sending message: timed out")

    print("Disconnecting from the broker.")
    _disconnect(client)
    store.close()
    print("Done")
    return 0


if __name__ == "__main__":
    sys.exit(main())