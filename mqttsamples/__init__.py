"""Small MQTT client programs: publishers, subscribers, consumers, chat and RPC."""

__version__ = "0.1.0"

__all__ = [
    "chat",
    "consume",
    "persistence",
    "publish",
    "rpc",
    "sslpub",
    "subscribe",
    "timepub",
    "topic",
]