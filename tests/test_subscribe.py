import threading

import pytest

from mqttsamples.subscribe import (
    ADD_TOPIC,
    DFLT_TOPICS,
    QOS,
    TopicRegistry,
    dyn_main,
    format_message,
    handle_dynamic_message,
    legacy_main,
    main,
)


class RecordingClient:
    def __init__(self):
        self.calls = []

    def subscribe(self, topic, qos=0):
        self.calls.append((topic, qos))


def test_registry_defaults_to_default_topics():
    registry = TopicRegistry()
    assert registry.snapshot() == list(DFLT_TOPICS)
    assert registry.snapshot()[0] == "requests/subscription/add"


def test_registry_snapshot_is_a_copy():
    registry = TopicRegistry(["a"])
    snap = registry.snapshot()
    snap.append("b")
    assert registry.snapshot() == ["a"]


def test_registry_add_appends_in_order():
    registry = TopicRegistry([])
    registry.add("x")
    registry.add("y")
    assert registry.snapshot() == ["x", "y"]
    assert len(registry) == 2
    assert "y" in registry


def test_registry_concurrent_adds_are_all_kept():
    registry = TopicRegistry([])

    def worker(n):
        for i in range(100):
            registry.add(f"t/{n}/{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(registry) == 400
    assert len(set(registry.snapshot())) == 400


def test_format_message_with_text_and_bytes():
    assert format_message("test", "hi") == "test - hi"
    assert format_message("hello", b"world") == "hello - world"


def test_format_message_replaces_invalid_utf8():
    out = format_message("t", b"\xffok")
    assert out.startswith("t - ")
    assert "\ufffd" in out
    assert out.endswith("ok")


def test_add_request_subscribes_and_registers():
    registry = TopicRegistry()
    client = RecordingClient()
    added = handle_dynamic_message(registry, client, ADD_TOPIC, b"new/topic")
    assert added == "new/topic"
    assert client.calls == [("new/topic", QOS)]
    assert registry.snapshot()[-1] == "new/topic"
    assert len(registry) == len(DFLT_TOPICS) + 1


def test_other_message_is_printed_not_subscribed(capsys):
    registry = TopicRegistry()
    client = RecordingClient()
    result = handle_dynamic_message(registry, client, "test", b"payload")
    assert result is None
    assert client.calls == []
    assert registry.snapshot() == list(DFLT_TOPICS)
    assert capsys.readouterr().out.strip() == "test - payload"


@pytest.mark.parametrize("entry", [main, legacy_main, dyn_main])
def test_bad_uri_fails_to_create_client(entry, capsys):
    assert entry(["bogus://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().out