"""Tests for request builders and response parsers."""

import json
from urllib.parse import unquote

import pytest

from rxpubnub import PNResult, PubNubCipher, PubNubConfig
from rxpubnub.crypto import sign_publish
from rxpubnub.operations import (
    ProtocolHandlers,
    build_here_now,
    build_history,
    build_publish,
    build_subscribe,
    build_time,
    parse_here_now,
    parse_history,
    parse_publish,
    parse_time,
)
from rxpubnub.result import OperationKind
from rxpubnub.subscribe import SubscribeMultiplexer


@pytest.fixture
def config():
    return PubNubConfig("pub-key", "sub-key", uuid="client-1", origin="http://example.test/")


def test_config_normalizes_origin(config):
    assert config.origin == "http://example.test"


@pytest.mark.parametrize("origin", ["", "example.test", "ftp://example.test"])
def test_config_rejects_bad_origin(origin):
    with pytest.raises(ValueError):
        PubNubConfig("p", "s", origin=origin)


def test_config_rejects_empty_keys():
    with pytest.raises(ValueError):
        PubNubConfig("", "s")
    with pytest.raises(ValueError):
        PubNubConfig("p", "")


def test_resolve_timeout(config):
    assert config.resolve_timeout(-1) == config.timeout
    assert config.resolve_timeout(None, long_poll=True) == config.subscribe_timeout
    assert config.resolve_timeout(2) == 2.0
    with pytest.raises(ValueError):
        config.resolve_timeout(0)


class TestBuilders:

    def test_publish_url(self, config):
        request = build_publish(config, "lobby", {"text": "hi/there"}, 5.0)
        assert request.kind is OperationKind.PUBLISH
        assert request.path == ("publish", "pub-key", "sub-key", "0", "lobby", "0", '{"text":"hi/there"}')
        assert request.url.startswith("http://example.test/publish/pub-key/sub-key/0/lobby/0/")
        # the slash inside the message must not split the path
        assert request.url.count("/") == 9
        assert request.query == {"uuid": "client-1"}
        assert request.timeout == 5.0

    def test_publish_signed(self, config):
        config.secret_key = "s3cret"
        request = build_publish(config, "lobby", "hello", 5.0)
        assert request.path[3] == sign_publish("pub-key", "sub-key", "s3cret", "lobby", '"hello"')

    def test_publish_encrypted(self, config):
        config.cipher_key = "enigma"
        request = build_publish(config, "lobby", {"a": 1}, 5.0)
        payload = json.loads(request.path[-1])
        assert PubNubCipher("enigma").decrypt(payload) == {"a": 1}

    def test_subscribe_url(self, config):
        request = build_subscribe(config, ("a", "b"), "1234", 310.0)
        assert request.path == ("subscribe", "sub-key", "a,b", "0", "1234")
        assert unquote(request.url) == "http://example.test/subscribe/sub-key/a,b/0/1234"

    def test_history_query(self, config):
        request = build_history(config, "lobby", 10, True, 5.0)
        assert request.path == ("v2", "history", "sub-key", "sub-key", "channel", "lobby")
        assert request.query == {"uuid": "client-1", "count": "10", "include_token": "true"}
        with pytest.raises(ValueError):
            build_history(config, "lobby", 0, False, 5.0)

    def test_here_now_and_time(self, config):
        assert build_here_now(config, "lobby", 5.0).path[:3] == ("v2", "presence", "sub-key")
        assert build_time(config, 5.0).url == "http://example.test/time/0"

    def test_invalid_channel(self, config):
        with pytest.raises(ValueError):
            build_publish(config, "", "x", 5.0)


class TestParsers:

    def test_publish(self, config):
        request = build_publish(config, "lobby", 1, 5.0)
        assert parse_publish(request, [1, "Sent", "1"]).result is PNResult.OK
        failed = parse_publish(request, [0, "Invalid Signature"])
        assert failed.result is PNResult.PUBLISH_FAILED
        assert failed.detail == "Invalid Signature"
        assert parse_publish(request, {"status": 1}).result is PNResult.FORMAT_ERROR

    def test_history_plain_and_tokens(self, config):
        request = build_history(config, "lobby", 2, False, 5.0)
        assert parse_history(request, [["a", "b"], 1, 2]).value == ["a", "b"]

        request = build_history(config, "lobby", 2, True, 5.0)
        outcome = parse_history(request, [[{"message": "a", "timetoken": 1}], 1, 1])
        assert outcome.value == [{"message": "a", "timetoken": 1}]
        assert parse_history(request, [["a"], 1, 1]).result is PNResult.FORMAT_ERROR

    def test_history_decrypts(self, config):
        config.cipher_key = "enigma"
        cipher = PubNubCipher("enigma")
        request = build_history(config, "lobby", 2, False, 5.0)
        assert parse_history(request, [[cipher.encrypt("x")], 1, 1]).value == ["x"]
        assert parse_history(request, [["plain"], 1, 1]).result is PNResult.DECRYPTION_ERROR

    def test_here_now(self, config):
        request = build_here_now(config, "lobby", 5.0)
        outcome = parse_here_now(request, {"uuids": ["u1", "u2", "u3"], "occupancy": 3})
        assert outcome.result is PNResult.OK
        assert outcome.value == {"occupancy": 3, "uuids": ["u1", "u2", "u3"]}
        assert parse_here_now(request, {"uuids": []}).result is PNResult.FORMAT_ERROR

    def test_time(self, config):
        request = build_time(config, 5.0)
        assert parse_time(request, [13_000_000_000_000_000]).value == 13_000_000_000_000_000
        assert parse_time(request, ["13"]).result is PNResult.FORMAT_ERROR
        assert parse_time(request, []).result is PNResult.FORMAT_ERROR


class TestProtocolHandlers:

    def test_subscribe_outcomes(self, config):
        handlers = ProtocolHandlers(SubscribeMultiplexer())
        request = build_subscribe(config, ("a", "b"), "0", 310.0)

        outcome = handlers.parse(request, [["x", "y"], "9", "b,a"])
        assert outcome.result is PNResult.OK
        assert outcome.value == ["x", "y"]
        assert outcome.channels == ("b", "a")

        assert handlers.parse(request, "garbage").result is PNResult.FORMAT_ERROR

    def test_subscribe_decryption_error(self, config):
        config.cipher_key = "enigma"
        handlers = ProtocolHandlers(SubscribeMultiplexer())
        request = build_subscribe(config, ("a",), "0", 310.0)
        assert handlers.parse(request, [["plain"], "9"]).result is PNResult.DECRYPTION_ERROR
        assert handlers.multiplexer.timetoken(("a",)) == "9"
