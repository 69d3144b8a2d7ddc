"""Publish one message over a TLS-secured connection."""

from __future__ import annotations

import sys
from pathlib import Path

import paho.mqtt.client as mqtt

from mqttsamples.publish import (
    _connect_blocking,
    _disconnect,
    _publish_and_wait,
    parse_broker_uri,
)

TRUST_STORE = "test-root-ca.crt"
KEY_STORE = "client.pem"
DEFAULT_SSL_URI = "ssl://localhost:18884"
CLIENT_ID = "ssl_publish"
USER_NAME = "testuser"
PASSWORD = "password"
MAX_BUFFERED_MESSAGES = 100


class MissingStoreError(Exception):
    """Raised when a certificate or key store file does not exist."""

    def __init__(self, path):
        super().__init__(f"store file does not exist: {path}")
        self.path = Path(path)


def find_store(directory, name) -> Path:
    """Return the path of store ``name`` in ``directory``, which must exist."""
    path = Path(directory) / name
    if not path.exists():
        raise MissingStoreError(path)
    return path


def _new_client(address, client_id):
    kwargs = {"client_id": client_id, "transport": address.transport}
    api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if api_version is not None:
        client = mqtt.Client(api_version.VERSION2, **kwargs)
    else:
        client = mqtt.Client(**kwargs)
    if address.transport == "websockets":
        client.ws_set_options(path=address.path)
    return client


def main(argv=None) -> int:
    """Check the stores, connect securely, publish and disconnect."""
    args = sys.argv[1:] if argv is None else list(argv)
    cwd = Path.cwd()
    stores = {}
    for label, name in (("trust", TRUST_STORE), ("key", KEY_STORE)):
        try:
            stores[label] = find_store(cwd, name)
        except MissingStoreError as err:
            print(f"The {label} store file does not exist: {str(err.path)!r}")
            print(f"  Get a copy of \"{name}\" from the broker's TLS test keys")
            return 1

    host = args[0] if args else DEFAULT_SSL_URI
    print(f"Connecting to host: '{host}'")

    password = PASSWORD
    try:
        address = parse_broker_uri(host)
        client = _new_client(address, CLIENT_ID)
        client.max_queued_messages_set(MAX_BUFFERED_MESSAGES)
        client.tls_set(ca_certs=str(stores["trust"]), certfile=str(stores["key"]))
        client.username_pw_set(USER_NAME, password=password)
        _connect_blocking(client, address)
        _publish_and_wait(client, "test", "Hello secure world!", 1)
        _disconnect(client)
    except (OSError, RuntimeError, ValueError) as err:
        print(err, file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())