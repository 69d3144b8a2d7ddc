from types import SimpleNamespace

import pytest

from mqttsamples.consume import (
    command_handler,
    data_handler,
    dispatch,
    main,
    sub_id_properties,
    try_reconnect,
    v5_main,
)


class FakeClient:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    def reconnect(self):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _msg(payload, sub_id=None, topic="data/x"):
    props = SimpleNamespace() if sub_id is None else SimpleNamespace(SubscriptionIdentifier=sub_id)
    return SimpleNamespace(topic=topic, payload=payload, properties=props)


def test_try_reconnect_succeeds_after_failures():
    sleeps = []
    client = FakeClient([OSError("down"), OSError("down"), 0])
    assert try_reconnect(client, attempts=5, delay=0.5, sleep=sleeps.append) is True
    assert client.calls == 3
    assert sleeps == [0.5, 0.5, 0.5]


def test_try_reconnect_gives_up():
    sleeps = []
    client = FakeClient([OSError("down")] * 4)
    assert try_reconnect(client, attempts=4, delay=1.0, sleep=sleeps.append) is False
    assert client.calls == 4
    assert len(sleeps) == 4


def test_try_reconnect_nonzero_rc_is_failure():
    client = FakeClient([7, 7])
    assert try_reconnect(client, attempts=2, delay=0, sleep=lambda _d: None) is False
    assert client.calls == 2


def test_data_handler_prints_and_continues(capsys):
    assert data_handler(_msg(b"42", topic="data/x")) is True
    assert capsys.readouterr().out.strip() == "data/x - 42"


@pytest.mark.parametrize("payload, expected", [(b"exit", False), (b"go", True), ("exit", False)])
def test_command_handler(payload, expected):
    assert command_handler(_msg(payload)) is expected


def test_dispatch_routes_by_subscription_id():
    seen = []
    handlers = (lambda m: seen.append(("one", m.payload)) or True, lambda m: seen.append(("two", m.payload)) or False)
    assert dispatch(_msg(b"a", [1]), handlers) is True
    assert dispatch(_msg(b"b", 2), handlers) is False
    assert seen == [("one", b"a"), ("two", b"b")]


def test_dispatch_with_default_handlers_exit():
    assert dispatch(_msg(b"exit", [2])) is False
    assert dispatch(_msg(b"exit", [1])) is True


def test_dispatch_missing_id_raises():
    with pytest.raises(LookupError):
        dispatch(_msg(b"x"))


@pytest.mark.parametrize("sub_id", [0, 3, [5]])
def test_dispatch_unknown_id_raises(sub_id):
    with pytest.raises(LookupError):
        dispatch(_msg(b"x", sub_id))


def test_sub_id_properties_round_trip():
    props = sub_id_properties(2)
    assert list(props.SubscriptionIdentifier) == [2]
    assert dispatch(SimpleNamespace(topic="command", payload=b"exit", properties=props)) is False


@pytest.mark.parametrize("sub_id", [0, -1, 268_435_456])
def test_sub_id_properties_out_of_range(sub_id):
    with pytest.raises(ValueError):
        sub_id_properties(sub_id)


def test_main_rejects_bad_uri(capsys):
    assert main(["foo://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().out


def test_v5_main_rejects_bad_uri(capsys):
    assert v5_main(["foo://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().err