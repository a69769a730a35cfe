import pytest

from agent_api.server.history.codec import ThreadHandle, ThreadStateCodec, extract_thread_id
from agent_api.server.history.errors import InvalidThreadTokenError


def test_serialize_then_deserialize_keeps_thread_id():
    codec = ThreadStateCodec()
    handle = ThreadHandle(thread_id="thread-1")

    restored = codec.deserialize(codec.serialize(handle))

    assert restored.thread_id == "thread-1"


def test_serialize_assigns_id_once():
    codec = ThreadStateCodec()
    handle = ThreadHandle()
    assert handle.is_new

    first = codec.serialize(handle)
    second = codec.serialize(handle)

    assert first == second == handle.thread_id
    assert len(first) == 32


def test_blank_tokens_give_fresh_handles():
    codec = ThreadStateCodec()
    for token in (None, "", "   "):
        assert codec.deserialize(token).thread_id is None


def test_plain_token_becomes_thread_id():
    assert ThreadStateCodec().deserialize("  abc123 ").thread_id == "abc123"


def test_structured_tokens_are_accepted():
    codec = ThreadStateCodec()
    assert codec.deserialize({"storeState": "t1"}).thread_id == "t1"
    assert codec.deserialize('{"storeState": "t2"}').thread_id == "t2"
    assert codec.deserialize({"threadId": "t3"}).thread_id == "t3"


def test_to_state_uses_store_state_key():
    codec = ThreadStateCodec()
    state = codec.to_state(ThreadHandle(thread_id="t1"))
    assert state == {"storeState": "t1"}
    assert codec.deserialize(state).thread_id == "t1"


def test_unrecognised_token_starts_new_thread():
    codec = ThreadStateCodec()
    assert codec.deserialize({"unexpected": 1}).thread_id is None
    assert codec.deserialize("{not json").thread_id is None


def test_unrecognised_token_raises_in_strict_mode():
    codec = ThreadStateCodec(strict=True)
    with pytest.raises(InvalidThreadTokenError):
        codec.deserialize({"unexpected": 1})
    assert codec.deserialize("plain-id").thread_id == "plain-id"


def test_extract_thread_id_shapes():
    assert extract_thread_id("t1") == "t1"
    assert extract_thread_id({"storeState": "t1"}) == "t1"
    assert extract_thread_id({"store_state": "t4"}) == "t4"


def test_extract_thread_id_falls_back_to_hint():
    garbage = {"storeState": 17, "other": ["x"]}
    assert extract_thread_id(garbage, prior_thread_id="t-prev") == "t-prev"
    assert extract_thread_id(garbage) is None
    assert extract_thread_id(12345, prior_thread_id=None) is None
    assert extract_thread_id("   ", prior_thread_id="t-prev") == "t-prev"
