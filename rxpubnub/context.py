"""The :class:`PubNub` context: one client, at most one request in flight.

A context runs in one of two modes chosen at construction:

* **blocking** (``loop=None``): every operation performs its exchange and
  retries in the calling thread and returns the owned
  :class:`~rxpubnub.result.Completion`;
* **event-driven** (``loop=<asyncio loop>``): every operation schedules a
  task on the loop and returns an :class:`asyncio.Future` resolving to the
  owned completion. Handlers run on the loop thread.

In both modes the per-call handler (or the context's :class:`Callbacks`)
runs first, then the completion is emitted on :attr:`PubNub.completions`.
"""

import asyncio
import threading
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from opentelemetry._logs import LoggerProvider, SeverityNumber
from opentelemetry.metrics import MeterProvider
from opentelemetry.trace import TracerProvider
from reactivex import Observable
from reactivex.subject import Subject

from .callbacks import Callbacks, CompletionDelivery
from .config import (
    DEFAULT_ORIGIN,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SUBSCRIBE_TIMEOUT,
    DEFAULT_TIMEOUT,
    PubNubConfig,
    generate_uuid,
    normalize_origin,
)
from .dispatcher import Dispatcher
from .mechanism import ContextBusyError, ContextClosedError
from .operations import (
    Handler,
    ProtocolHandlers,
    Request,
    build_here_now,
    build_history,
    build_publish,
    build_subscribe,
    build_time,
)
from .result import Completion, PNResult
from .retry import RetryPolicy
from .subscribe import SubscribeMultiplexer, channel_set
from .telemetry import DispatchMetrics, LogContext, OTelLogger, get_default_providers
from .transport import HTTPTransport, initialize


class PubNub:
    """A PubNub client context.

    Parameters
    ----------
    publish_key, subscribe_key : str
        Account keys; both must be non-empty.
    callbacks : Callbacks | None
        Default completion handlers, used by calls that pass no ``handler``.
    loop : asyncio.AbstractEventLoop | None
        Event loop for event-driven mode. ``None`` selects blocking mode.
    origin : str
        Service base URL, ``http://`` or ``https://``.
    uuid : str | None
        Client identity. A random UUID4 is generated when omitted.
    secret_key : str | None
        Enables publish signatures.
    cipher_key : str | None
        Enables end-to-end message encryption.
    retry_policy : RetryPolicy | None
        Error retry behaviour; defaults to retrying recoverable errors.
    timeout, subscribe_timeout : float
        Defaults substituted for :data:`~rxpubnub.config.DEFAULT_TIMEOUT`.
    transport : HTTPTransport | None
        Network boundary. When omitted the context creates and owns one;
        an injected transport is only borrowed and stays open after
        :meth:`close`. Tests inject one backed by ``httpx.MockTransport``.
    logger_provider, tracer_provider, meter_provider : optional
        OpenTelemetry providers. Without a logger provider, warnings and
        errors go to stderr through the default console provider.

    Example
    -------
    >>> with PubNub("demo", "demo") as pubnub:
    ...     completion = pubnub.publish("hello_world", {"text": "hi"})
    ...     completion.result
    <PNResult.OK: 0>
    """

    def __init__(
        self,
        publish_key: str,
        subscribe_key: str,
        *,
        callbacks: Callbacks | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        origin: str = DEFAULT_ORIGIN,
        uuid: str | None = None,
        secret_key: str | None = None,
        cipher_key: str | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        subscribe_timeout: float = DEFAULT_SUBSCRIBE_TIMEOUT,
        transport: HTTPTransport | None = None,
        logger_provider: LoggerProvider | None = None,
        tracer_provider: TracerProvider | None = None,
        meter_provider: MeterProvider | None = None,
    ):
        initialize()

        self._config = PubNubConfig(
            publish_key=publish_key,
            subscribe_key=subscribe_key,
            secret_key=secret_key or None,
            cipher_key=cipher_key or None,
            origin=origin,
            uuid=uuid if uuid is not None else generate_uuid(),
            timeout=timeout,
            subscribe_timeout=subscribe_timeout,
        )
        self._loop = loop
        self._callbacks = callbacks or Callbacks()
        self._policy = retry_policy or RetryPolicy()
        # an injected transport is borrowed and left open by close()
        self._owns_transport = transport is None
        self._transport = transport or HTTPTransport()

        # telemetry
        if logger_provider is None:
            _, logger_provider = get_default_providers()
            min_severity = SeverityNumber.WARN
        else:
            min_severity = None
        self._otel_logger = logger_provider.get_logger("rxpubnub")
        self._min_severity = min_severity
        self._tracer = tracer_provider.get_tracer("rxpubnub") if tracer_provider else None
        self._metrics = DispatchMetrics(meter_provider) if meter_provider else None
        self._logger = self._make_logger()

        self._multiplexer = SubscribeMultiplexer()
        self._dispatcher = Dispatcher(
            self._transport,
            ProtocolHandlers(self._multiplexer),
            self._logger,
            tracer=self._tracer,
            metrics=self._metrics,
        )
        self._completions: Subject = Subject()
        self._delivery = CompletionDelivery(self, self._callbacks, self._completions, self._logger)

        self._lock = threading.Lock()
        self._busy = False
        self._closed = False
        self._abandon = threading.Event()
        self._task: asyncio.Task | None = None

    def _make_logger(self) -> OTelLogger:
        return OTelLogger(
            self._otel_logger,
            source="PubNub",
            context=LogContext(
                service="rxpubnub",
                origin=self._config.origin,
                client_uuid=self._config.uuid,
            ),
            min_severity=self._min_severity,
        )

    # ---------------- properties ---------------- #
    @property
    def config(self) -> PubNubConfig:
        return self._config

    @property
    def uuid(self) -> str:
        return self._config.uuid

    def current_uuid(self) -> str:
        """The client identity sent with every request."""
        return self._config.uuid

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._policy

    @property
    def event_driven(self) -> bool:
        return self._loop is not None

    @property
    def in_flight(self) -> bool:
        with self._lock:
            return self._busy

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def completions(self) -> Observable:
        """Every delivered completion, after its handler has run."""
        return self._completions

    @property
    def logger(self) -> OTelLogger:
        return self._logger

    # ---------------- setters ---------------- #
    def _mutate(self, what: str, apply) -> None:
        with self._lock:
            if self._closed:
                raise ContextClosedError(
                    RuntimeError("context is closed"), source="PubNub", note=f"set {what}"
                )
            if self._busy:
                raise ContextBusyError(
                    RuntimeError("a request is in flight"),
                    source="PubNub",
                    note=f"cannot change {what} until the current request completes",
                )
            apply()

    def set_secret_key(self, secret_key: str | None) -> None:
        """Enable (or with None, disable) publish message signing."""

        def apply():
            self._config.secret_key = secret_key or None

        self._mutate("secret key", apply)

    def set_cipher_key(self, cipher_key: str | None) -> None:
        """Enable (or with None, disable) end-to-end encryption of messages."""
        def apply():
            self._config.cipher_key = cipher_key or None

        self._mutate("cipher key", apply)

    def set_origin(self, origin: str) -> None:
        origin = normalize_origin(origin)

        def apply():
            self._config.origin = origin
            self._refresh_logger()

        self._mutate("origin", apply)

    def set_uuid(self, uuid: str) -> None:
        if not isinstance(uuid, str) or not uuid:
            raise ValueError("uuid must be a non-empty string")

        def apply():
            self._config.uuid = uuid
            self._refresh_logger()

        self._mutate("uuid", apply)

    def set_retry_policy(self, policy: RetryPolicy) -> None:
        if not isinstance(policy, RetryPolicy):
            raise TypeError(f"expected RetryPolicy, got {type(policy).__name__}")

        def apply():
            self._policy = policy

        self._mutate("retry policy", apply)

    def error_policy(self, retry_mask: int, print_errors: bool = True) -> None:
        """Set which result codes are retried and whether errors are reported.

        Args:
            retry_mask: Bitwise OR of ``PNResult.X.bit`` for the codes to
                retry; only recoverable codes are ever retried.
            print_errors: Report every error outcome through the logger.
        """
        def apply():
            self._policy = replace(self._policy, retry_mask=retry_mask, print_errors=print_errors)

        self._mutate("error policy", apply)

    def _refresh_logger(self) -> None:
        self._logger = self._make_logger()
        self._dispatcher.logger = self._logger
        self._delivery.logger = self._logger

    # ---------------- operations ---------------- #
    def publish(
        self,
        channel: str,
        message: Any,
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """Publish a JSON-serialisable ``message`` on ``channel``.

        The completion value is the service reply ``[1, "Sent", timetoken]``.
        """
        self._check_open()
        request = build_publish(self._config, channel, message, self._config.resolve_timeout(timeout))
        return self._start(request, handler, call_data)

    def subscribe(
        self,
        channel: str,
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """Long-poll one channel for messages published since the last call."""
        return self.subscribe_multi([channel], timeout, handler, call_data)

    def subscribe_multi(
        self,
        channels: Iterable[str],
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """Long-poll several channels at once.

        The first call on a channel set only fetches the current timetoken
        and completes with no messages; later calls return what was
        published in between. ``completion.channels[i]`` is the channel of
        message ``i``.
        """
        self._check_open()
        channels = channel_set(channels)
        request = build_subscribe(
            self._config,
            channels,
            self._multiplexer.timetoken(channels),
            self._config.resolve_timeout(timeout, long_poll=True),
        )
        return self._start(request, handler, call_data)

    def history(
        self,
        channel: str,
        limit: int,
        include_token: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """Fetch up to ``limit`` recent messages of ``channel``, oldest first."""
        self._check_open()
        request = build_history(
            self._config, channel, limit, include_token, self._config.resolve_timeout(timeout)
        )
        return self._start(request, handler, call_data)

    def here_now(
        self,
        channel: str,
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """List the clients present on ``channel``: ``{"occupancy", "uuids"}``."""
        self._check_open()
        request = build_here_now(self._config, channel, self._config.resolve_timeout(timeout))
        return self._start(request, handler, call_data)

    def time(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        handler: Handler | None = None,
        call_data: Any = None,
    ):
        """Fetch the service time as an integer timetoken."""
        self._check_open()
        request = build_time(self._config, self._config.resolve_timeout(timeout))
        return self._start(request, handler, call_data)

    # ---------------- in-flight management ---------------- #
    def _check_open(self) -> None:
        if self._closed:
            raise ContextClosedError(
                RuntimeError("context is closed"), source="PubNub", note="operation refused"
            )

    def _acquire(self) -> bool:
        with self._lock:
            if self._closed:
                raise ContextClosedError(
                    RuntimeError("context is closed"), source="PubNub", note="operation refused"
                )
            if self._busy:
                return False
            self._busy = True
            return True

    def _release(self) -> None:
        with self._lock:
            self._busy = False

    def _start(self, request: Request, handler: Handler | None, call_data: Any):
        request.handler = handler
        request.call_data = call_data
        policy = self._policy

        if self._loop is None:
            if not self._acquire():
                return self._delivery.occupied(request)
            return self._run_blocking(request, policy)

        future = self._loop.create_future()
        if not self._acquire():
            self._loop.call_soon(self._resolve_occupied, request, future)
            return future
        task = self._loop.create_task(self._run_async(request, policy, future))
        task.add_done_callback(lambda t: self._task_done(t, future))
        self._task = task
        return future

    def _run_blocking(self, request: Request, policy: RetryPolicy) -> Completion:
        try:
            outcome, attempts = self._dispatcher.run(request, policy, self._abandon)
        finally:
            self._release()

        if outcome.result is PNResult.CANCELLED:
            return Completion(
                kind=request.kind,
                result=PNResult.CANCELLED,
                call_data=request.call_data,
                attempts=attempts,
            )
        return self._delivery.deliver(request, outcome, attempts)

    async def _run_async(self, request: Request, policy: RetryPolicy, future: asyncio.Future) -> None:
        try:
            outcome, attempts = await self._dispatcher.arun(request, policy)
        except Exception as e:
            self._release()
            if not future.done():
                future.set_exception(e)
            return

        self._release()
        self._task = None
        completion = self._delivery.deliver(request, outcome, attempts)
        if not future.done():
            future.set_result(completion)

    def _task_done(self, task: asyncio.Task, future: asyncio.Future) -> None:
        # a task cancelled before its first step never enters _run_async
        if task.cancelled():
            self._release()
            future.cancel()

    def _resolve_occupied(self, request: Request, future: asyncio.Future) -> None:
        completion = self._delivery.occupied(request)
        if not future.done():
            future.set_result(completion)

    # ---------------- lifecycle ---------------- #
    def close(self) -> None:
        """Abandon any in-flight request and release the context's resources.

        Safe to call more than once and from any thread. In event-driven
        mode an in-flight request is cancelled and never delivered; in
        blocking mode the blocked call returns CANCELLED without running
        handlers once its current exchange is interrupted or ends.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._abandon.set()

        task, self._task = self._task, None
        if task is not None and not task.done():
            if self._on_loop_thread():
                task.cancel()
            else:
                self._loop.call_soon_threadsafe(task.cancel)

        if self._owns_transport:
            self._transport.close()
            if self._loop is not None:
                self._schedule_aclose()
        self._completions.on_completed()
        self._logger.debug("context closed")

    def _schedule_aclose(self) -> None:
        # the asyncio client can only be closed on its own loop
        loop = self._loop
        if loop.is_closed():
            return
        if loop.is_running():
            asyncio.run_coroutine_threadsafe(self._transport.aclose(), loop)
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop.run_until_complete(self._transport.aclose())
        else:
            self._logger.warning("asyncio client left open, use aclose() from the event loop")

    async def aclose(self) -> None:
        """Close the context and its asyncio HTTP client."""
        self.close()
        if self._owns_transport:
            await self._transport.aclose()

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return not self._loop.is_running()

    def __enter__(self) -> "PubNub":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "PubNub":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        mode = "event-driven" if self._loop is not None else "blocking"
        return f"PubNub(uuid={self._config.uuid!r}, origin={self._config.origin!r}, mode={mode})"
