import io

import pytest

from mqttsamples.chat import (
    chat_client_id,
    chat_topic,
    format_chat,
    joined_text,
    left_text,
    main,
    read_chat_lines,
)


def test_chat_topic_prefix():
    assert chat_topic("room") == "chat/room"


def test_client_id_distinguishes_users_and_groups():
    ids = {chat_client_id("ann", "g1"), chat_client_id("bob", "g1"), chat_client_id("ann", "g2")}
    assert len(ids) == 3
    assert all("ann" in cid or "bob" in cid for cid in ids)
    assert chat_client_id("ann", "g1").endswith("ann-g1")


def test_format_chat():
    assert format_chat("ann", "hi all") == "ann: hi all"


def test_joined_and_left_texts():
    assert joined_text("ann") == "<<< ann joined the group >>>"
    assert left_text("ann") == "<<< ann left the group >>>"


def test_read_chat_lines_stops_at_blank_line():
    stream = io.StringIO("hi\n  there  \n\nnever seen\n")
    assert list(read_chat_lines(stream)) == ["hi", "there"]


def test_read_chat_lines_until_eof():
    stream = io.StringIO("one\ntwo")
    assert list(read_chat_lines(stream)) == ["one", "two"]


def test_read_chat_lines_whitespace_only_line_ends():
    stream = io.StringIO("first\n   \nsecond\n")
    assert list(read_chat_lines(stream)) == ["first"]


@pytest.mark.parametrize("argv", [[], ["ann"], ["ann", "g1", "extra"]])
def test_main_requires_user_and_group(argv, capsys):
    assert main(argv) == 1
    assert capsys.readouterr().out.startswith("USAGE:")