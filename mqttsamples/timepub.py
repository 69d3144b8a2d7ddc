"""Publish the current time, in hundredths of a second, each time it changes."""

from __future__ import annotations

import sys
import time

import paho.mqtt.client as mqtt

from mqttsamples.publish import (
    DEFAULT_URI,
    _connect_blocking,
    _disconnect,
    make_client,
)

CLIENT_ID = "async_pub_time"
TOPIC = "data/time"
QOS = 1
_POLL_INTERVAL = 0.01


def time_now_hundredths() -> int:
    """The system time in units of 1/100 second since the epoch."""
    return time.time_ns() // 10_000_000


def format_hundredths(t) -> str:
    """Render a reading in hundredths as seconds with three decimals."""
    return f"{0.01 * t:.3f}"


def wait_for_tick(previous, clock=time_now_hundredths, sleep=time.sleep):
    """Poll ``clock`` until its reading differs from ``previous``; return it."""
    t = previous
    while t == previous:
        sleep(_POLL_INTERVAL)
        t = clock()
    return t


def main(argv=None) -> int:
    """Publish the time on 'data/time' until interrupted."""
    args = sys.argv[1:] if argv is None else list(argv)
    host = args[0] if args else DEFAULT_URI
    try:
        client, address = make_client(host, CLIENT_ID)
    except ValueError as err:
        print(f"Error creating the client: {err}")
        return 1
    try:
        _connect_blocking(client, address)
    except OSError as err:
        print(f"Unable to connect: {err}")
        return 1

    print(f"Publishing time on the topic '{TOPIC}'")
    try:
        while True:
            t = wait_for_tick(time_now_hundredths())
            info = client.publish(TOPIC, format_hundredths(t), qos=QOS)
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                print(
                    f"Error creating/queuing the message: {mqtt.error_string(info.rc)}",
                    file=sys.stderr,
                )
                continue
            try:
                info.wait_for_publish()
            except (RuntimeError, ValueError) as err:
                print(f"Error sending message: {err}", file=sys.stderr)
    except KeyboardInterrupt:
        pass
    _disconnect(client)
    return 0


if __name__ == "__main__":
    sys.exit(main())