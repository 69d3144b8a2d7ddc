import pytest

from mqttsamples.persistence import MemPersistence, PersistenceError, main


@pytest.fixture
def store():
    s = MemPersistence()
    s.open("async_persist_pub", "tcp://localhost:1883")
    return s


def test_open_sets_name(store):
    assert store.name == "async_persist_pub-tcp://localhost:1883"


def test_put_concatenates_buffers(store):
    store.put("k", [b"ab", b"", b"cd"])
    assert store.get("k") == b"abcd"


def test_put_overwrites(store):
    store.put("k", [b"one"])
    store.put("k", [b"two"])
    assert store.get("k") == b"two"
    assert store.keys() == ["k"]


def test_get_missing_raises(store):
    with pytest.raises(PersistenceError):
        store.get("missing")


def test_remove(store):
    store.put("k", [b"x"])
    store.remove("k")
    assert not store.contains_key("k")
    with pytest.raises(PersistenceError):
        store.remove("k")


def test_keys_and_contains(store):
    assert store.keys() == []
    store.put("a", [b"1"])
    store.put("b", [b"2"])
    assert sorted(store.keys()) == ["a", "b"]
    assert store.contains_key("a")
    assert "b" in store
    assert len(store) == 2


def test_clear(store):
    store.put("a", [b"1"])
    store.clear()
    assert store.keys() == []
    assert not store.contains_key("a")


def test_close_keeps_data(store):
    store.put("a", [b"1"])
    store.close()
    assert store.get("a") == b"1"


def test_main_bad_uri(capsys):
    assert main(["bogus://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().out