"""Tests for the subscribe multiplexer."""

import pytest

from rxpubnub import DecryptionError, PubNubCipher
from rxpubnub.subscribe import (
    INITIAL_TIMETOKEN,
    SubscribeMultiplexer,
    SubscriptionState,
    channel_set,
    parse_subscribe,
)


class TestChannelSet:

    def test_single_name(self):
        assert channel_set("lobby") == ("lobby",)

    def test_sorted_and_deduplicated(self):
        assert channel_set(["b", "a", "b"]) == ("a", "b")

    @pytest.mark.parametrize("bad", [[], [""], ["a,b"], [None]])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            channel_set(bad)


def test_state_starts_at_zero_and_is_keyed_by_set():
    state = SubscriptionState()
    assert state.token(("a",)) == INITIAL_TIMETOKEN
    state.update(("a",), "123")
    assert state.token(("a",)) == "123"
    assert state.token(("a", "b")) == INITIAL_TIMETOKEN
    assert ("a",) in state
    state.reset(("a",))
    assert ("a",) not in state


class TestParseSubscribe:

    def test_single_channel_attribution(self):
        batch = parse_subscribe([["m1", "m2"], "150"], ("lobby",))
        assert batch.messages == ["m1", "m2"]
        assert batch.channels == ("lobby", "lobby")
        assert batch.timetoken == "150"

    def test_multi_channel_attribution(self):
        batch = parse_subscribe([["x", "y", "z"], "151", "a,b,a"], ("a", "b"))
        assert batch.channels == ("a", "b", "a")
        assert len(batch.channels) == len(batch.messages)

    def test_empty_batch_has_no_attribution(self):
        batch = parse_subscribe([[], "152"], ("a", "b"))
        assert batch.messages == []
        assert batch.channels == ()

    def test_integer_timetoken_accepted(self):
        assert parse_subscribe([[], 153], ("a",)).timetoken == "153"

    @pytest.mark.parametrize(
        "body",
        [
            {"messages": []},
            [[]],
            ["not a list", "1"],
            [[], ""],
            [["x"], "1", "a,b"],
            [["x"], "1", 7],
        ],
    )
    def test_malformed(self, body):
        with pytest.raises(ValueError):
            parse_subscribe(body, ("a", "b"))

    def test_multi_channel_without_attribution_rejected(self):
        with pytest.raises(ValueError):
            parse_subscribe([["x"], "1"], ("a", "b"))


class TestSubscribeMultiplexer:

    def test_complete_advances_token(self):
        mux = SubscribeMultiplexer()
        channels = ("a",)
        assert mux.timetoken(channels) == "0"
        mux.complete(channels, [[], "100"], None)
        assert mux.timetoken(channels) == "100"
        batch = mux.complete(channels, [["hello"], "101"], None)
        assert batch.messages == ["hello"]
        assert mux.timetoken(channels) == "101"

    def test_decrypts_messages(self):
        cipher = PubNubCipher("enigma")
        mux = SubscribeMultiplexer()
        batch = mux.complete(("a",), [[cipher.encrypt({"n": 1})], "5"], cipher)
        assert batch.messages == [{"n": 1}]

    def test_token_advances_even_when_decryption_fails(self):
        mux = SubscribeMultiplexer()
        with pytest.raises(DecryptionError):
            mux.complete(("a",), [["plain text"], "77"], PubNubCipher("enigma"))
        assert mux.timetoken(("a",)) == "77"

    def test_malformed_response_keeps_token(self):
        mux = SubscribeMultiplexer()
        mux.complete(("a",), [[], "10"], None)
        with pytest.raises(ValueError):
            mux.complete(("a",), ["oops"], None)
        assert mux.timetoken(("a",)) == "10"
