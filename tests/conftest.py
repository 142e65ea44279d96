"""Shared test fixtures for rxpubnub tests.

The fake service speaks just enough of the PubNub REST protocol for the
client: publish stores messages, subscribe returns what was published after
the supplied timetoken, history/here-now/time answer from in-memory state.
It is plugged in through ``httpx.MockTransport``.
"""

import hashlib
import json
import threading
from urllib.parse import unquote

import httpx
import pytest
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import (
    LogRecordExporter,
    LogRecordExportResult,
    SimpleLogRecordProcessor,
)

from rxpubnub import HTTPTransport, PubNub, RetryPolicy

FIRST_TIMETOKEN = 15_000_000_000_000_000


class FakePubNubService:
    """In-memory stand-in for the PubNub REST service."""

    def __init__(self, secret_key: str | None = None, hold: float = 0.05):
        self.secret_key = secret_key
        self.hold = hold  # how long an idle subscribe waits for messages
        self.presence: dict[str, list[str]] = {}
        self.requests: list[httpx.Request] = []
        # injected failures, consumed one per request: status code, response or exception
        self.failures: list[int | httpx.Response | Exception] = []
        self._log: list[tuple[int, str, object]] = []
        self._timetoken = FIRST_TIMETOKEN
        self._cond = threading.Condition()

    # ---------------- helpers for tests ---------------- #
    @property
    def timetoken(self) -> int:
        return self._timetoken

    def messages(self, channel: str) -> list:
        with self._cond:
            return [m for _, ch, m in self._log if ch == channel]

    def inject(self, channel: str, payload: object) -> int:
        """Store a message as if another client had published it."""
        with self._cond:
            self._timetoken += 1
            self._log.append((self._timetoken, channel, payload))
            self._cond.notify_all()
            return self._timetoken

    # ---------------- transport entry point ---------------- #
    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            if isinstance(failure, httpx.Response):
                return failure
            return httpx.Response(failure, text="injected failure")

        raw = request.url.raw_path.decode("ascii").split("?", 1)[0]
        segments = [unquote(s) for s in raw.strip("/").split("/")]
        params = request.url.params

        if segments[0] == "publish":
            return self._publish(*segments[1:])
        if segments[0] == "subscribe":
            return self._subscribe(segments[2], segments[4])
        if segments[:2] == ["v2", "history"]:
            return self._history(segments[5], int(params["count"]), params.get("include_token") == "true")
        if segments[:2] == ["v2", "presence"]:
            return self._here_now(segments[5])
        if segments == ["time", "0"]:
            return httpx.Response(200, json=[self._timetoken])
        return httpx.Response(404, text="not found")

    def _publish(self, pub, sub, signature, channel, _, message) -> httpx.Response:
        if self.secret_key:
            plain = "/".join((pub, sub, self.secret_key, channel, message))
            if signature != hashlib.md5(plain.encode("utf-8")).hexdigest():
                return httpx.Response(200, json=[0, "Invalid Signature"])
        timetoken = self.inject(channel, json.loads(message))
        return httpx.Response(200, json=[1, "Sent", str(timetoken)])

    def _subscribe(self, channels: str, since: str) -> httpx.Response:
        names = channels.split(",")
        with self._cond:
            if since == "0":
                return httpx.Response(200, json=[[], str(self._timetoken)])

            def pending():
                return [(ch, m) for tt, ch, m in self._log if tt > int(since) and ch in names]

            self._cond.wait_for(pending, timeout=self.hold)
            batch = pending()
            body = [[m for _, m in batch], str(self._timetoken)]
            if len(names) > 1:
                body.append(",".join(ch for ch, _ in batch))
        return httpx.Response(200, json=body)

    def _history(self, channel: str, count: int, include_token: bool) -> httpx.Response:
        with self._cond:
            entries = [(tt, m) for tt, ch, m in self._log if ch == channel][-count:]
        if include_token:
            messages = [{"message": m, "timetoken": tt} for tt, m in entries]
        else:
            messages = [m for _, m in entries]
        start = entries[0][0] if entries else 0
        end = entries[-1][0] if entries else 0
        return httpx.Response(200, json=[messages, start, end])

    def _here_now(self, channel: str) -> httpx.Response:
        uuids = self.presence.get(channel, [])
        return httpx.Response(
            200,
            json={"status": 200, "message": "OK", "service": "Presence", "uuids": uuids, "occupancy": len(uuids)},
        )


class CollectingExporter(LogRecordExporter):
    """Keeps every exported log record in memory."""

    def __init__(self):
        self.records = []

    def export(self, batch):
        self.records.extend(r.log_record for r in batch)
        return LogRecordExportResult.SUCCESS

    def shutdown(self):
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True

    def bodies(self, severity_text: str | None = None) -> list[str]:
        return [
            str(r.body) for r in self.records if severity_text is None or r.severity_text == severity_text
        ]


@pytest.fixture
def service():
    return FakePubNubService()


@pytest.fixture
def mock_transport(service):
    return httpx.MockTransport(service.handle)


@pytest.fixture
def transport(mock_transport):
    return HTTPTransport(sync_transport=mock_transport, async_transport=mock_transport)


@pytest.fixture
def log_exporter():
    return CollectingExporter()


@pytest.fixture
def logger_provider(log_exporter):
    provider = LoggerProvider()
    provider.add_log_record_processor(SimpleLogRecordProcessor(log_exporter))
    return provider


@pytest.fixture
def fast_retry():
    return RetryPolicy(base_delay=0.0, max_delay=0.0, jitter=0.0)


@pytest.fixture
def make_pubnub(mock_transport, logger_provider, fast_retry):
    """Factory for contexts wired to the fake service; all are closed afterwards."""
    created = []
    transports = []

    def factory(**kwargs):
        if "transport" not in kwargs:
            kwargs["transport"] = HTTPTransport(
                sync_transport=mock_transport, async_transport=mock_transport
            )
            transports.append(kwargs["transport"])
        kwargs.setdefault("logger_provider", logger_provider)
        kwargs.setdefault("retry_policy", fast_retry)
        pubnub = PubNub(
            kwargs.pop("publish_key", "demo-pub"),
            kwargs.pop("subscribe_key", "demo-sub"),
            **kwargs,
        )
        created.append(pubnub)
        return pubnub

    yield factory
    for pubnub in created:
        pubnub.close()
    for transport in transports:
        transport.close()


@pytest.fixture
def broken_gzip():
    """A 200 reply whose body does not match its declared gzip encoding."""
    return httpx.Response(
        200,
        stream=httpx.ByteStream(b"not gzip at all"),
        headers={"content-encoding": "gzip"},
    )
