import pytest

from mqttsamples.topic import TOPIC_ALIAS, TOPIC_NAME, Topic, alias_main, main


class FakeClient:
    def __init__(self):
        self.published = []
        self.subscribed = []

    def publish(self, topic, payload, qos=0, retain=False, properties=None):
        self.published.append((topic, payload, qos, retain, properties))
        return len(self.published)

    def subscribe(self, topic, qos=0, options=None):
        self.subscribed.append((topic, qos, options))
        return (0, len(self.subscribed))


def test_publish_uses_topic_name_and_qos():
    client = FakeClient()
    topic = Topic(client, "test", 1)
    topic.publish("Hello there")
    assert client.published == [("test", "Hello there", 1, False, None)]


def test_publish_returns_client_result():
    client = FakeClient()
    topic = Topic(client, "test")
    assert topic.publish("a") == 1
    assert topic.publish("b") == 2


def test_retained_flag_is_passed():
    client = FakeClient()
    Topic(client, "test", 0, retained=True).publish("x")
    assert client.published[0][3] is True


def test_alias_sets_property_and_later_publishes_use_it():
    client = FakeClient()
    topic = Topic(client, TOPIC_NAME, 1)
    topic.publish_with_alias(TOPIC_ALIAS, "first")
    name, payload, _, _, props = client.published[0]
    assert name == TOPIC_NAME
    assert payload == "first"
    assert props.TopicAlias == TOPIC_ALIAS

    topic.publish("second")
    name, _, _, _, props = client.published[1]
    assert name == ""
    assert props.TopicAlias == TOPIC_ALIAS


def test_alias_zero_removes_alias():
    client = FakeClient()
    topic = Topic(client, TOPIC_NAME, 1)
    topic.publish_with_alias(TOPIC_ALIAS, "set")
    topic.publish_with_alias(0, "removed")
    topic.publish("plain")
    assert client.published[1][0] == TOPIC_NAME
    assert client.published[1][4] is None
    assert client.published[2][0] == TOPIC_NAME
    assert client.published[2][4] is None
    assert topic.alias == 0


@pytest.mark.parametrize("alias", [-1, 0x10000])
def test_alias_out_of_range_rejected(alias):
    client = FakeClient()
    with pytest.raises(ValueError):
        Topic(client, "test").publish_with_alias(alias, "x")
    assert client.published == []


def test_subscribe_plain():
    client = FakeClient()
    Topic(client, "chat/group", 1).subscribe()
    assert client.subscribed == [("chat/group", 1, None)]


def test_subscribe_no_local_sets_options():
    client = FakeClient()
    Topic(client, "chat/group", 1).subscribe(no_local=True)
    topic, _, options = client.subscribed[0]
    assert topic == "chat/group"
    assert options.noLocal is True
    assert options.QoS == 1


def test_main_rejects_bad_uri(capsys):
    assert main(["foo://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().out


def test_alias_main_rejects_bad_uri(capsys):
    assert alias_main(["foo://localhost"]) == 1
    assert "Error creating the client" in capsys.readouterr().out