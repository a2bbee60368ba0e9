import pytest

from gephclient.replies import Reply, Socks5Error, reply_message


@pytest.mark.parametrize("reply", list(Reply))
def test_reply_message_matches_member_text(reply):
    assert reply_message(int(reply)) == str(reply)
    assert reply_message(reply) == reply.message


def test_known_messages():
    assert reply_message(Reply.CONNECTION_REFUSED) == "Connection refused"
    assert reply_message(Reply.TTL_EXPIRED) == "TTL expired"
    assert reply_message(Reply.SUCCEEDED) == "Succeeded"


@pytest.mark.parametrize("code", [9, 0x42, 0xFF])
def test_unknown_code_message(code):
    assert reply_message(code) == f"Other reply ({code})"


def test_out_of_range_code_rejected():
    with pytest.raises(ValueError):
        reply_message(256)
    with pytest.raises(ValueError):
        reply_message(-1)


def test_from_code_known_and_unknown():
    assert Reply.from_code(int(Reply.CONNECTION_REFUSED)) is Reply.CONNECTION_REFUSED
    unknown = Reply.from_code(200)
    assert unknown == 200
    assert not isinstance(unknown, Reply)


def test_error_carries_reply_and_message():
    err = Socks5Error(Reply.HOST_UNREACHABLE, "cannot reach")
    assert err.reply is Reply.HOST_UNREACHABLE
    assert err.message == "cannot reach"
    assert str(err) == "cannot reach"


def test_error_is_an_os_error():
    err = Socks5Error(Reply.GENERAL_FAILURE, "boom")
    assert isinstance(err, OSError)
    assert err.reply is Reply.GENERAL_FAILURE
    assert err.message == "boom"
    assert str(err) == "boom"