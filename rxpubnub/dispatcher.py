"""Request dispatcher: one network exchange at a time, bounded by a timeout.

The dispatcher owns the exchange -> classify -> parse -> retry loop. It does
not decide whether to retry itself; it asks the context's
:class:`~rxpubnub.retry.RetryPolicy` after every attempt and either re-issues
the request or returns the final outcome for delivery.
"""

import asyncio
import json
import threading
import time
from contextlib import nullcontext

import httpx
from opentelemetry.trace import Tracer

from .operations import Outcome, ProtocolHandlers, Request
from .result import PNResult
from .retry import RetryDecision, RetryPolicy
from .telemetry.logger import OTelLogger
from .telemetry.metrics import DispatchMetrics
from .transport import HTTPTransport
from .utils import get_short_error_info

CANCELLED = Outcome(PNResult.CANCELLED, detail="context closed")


class Dispatcher:
    """Issues :class:`~rxpubnub.operations.Request` objects over a transport.

    Parameters
    ----------
    transport : HTTPTransport
        Network boundary used for every exchange.
    handlers : ProtocolHandlers
        Parsers applied to successful HTTP replies.
    logger : OTelLogger
        Destination of debug records and of the retry-policy diagnostics.
    tracer : Tracer | None
        When set, every dispatch runs inside a ``pubnub.<operation>`` span.
    metrics : DispatchMetrics | None
        When set, exchanges, retries and completions are counted.
    """

    def __init__(
        self,
        transport: HTTPTransport,
        handlers: ProtocolHandlers,
        logger: OTelLogger,
        tracer: Tracer | None = None,
        metrics: DispatchMetrics | None = None,
    ):
        self.transport = transport
        self.handlers = handlers
        self.logger = logger
        self.tracer = tracer
        self.metrics = metrics

    # ---------------- classification ---------------- #
    def classify(self, request: Request, response: httpx.Response) -> Outcome:
        """Turn an HTTP reply into an outcome, running the protocol parser on 2xx."""
        status = response.status_code
        # throttling is transient, like an overloaded server
        if status >= 500 or status == 429:
            return Outcome(PNResult.SERVICE_ERROR, value=status, detail=f"HTTP {status}")
        if not 200 <= status < 300:
            return Outcome(PNResult.HTTP_ERROR, value=status, detail=f"HTTP {status}")

        try:
            body = json.loads(response.content)
        except ValueError as e:
            return Outcome(PNResult.FORMAT_ERROR, detail=get_short_error_info(e))

        return self.handlers.parse(request, body)

    @staticmethod
    def exchange_error(e: Exception) -> Outcome:
        """Map a failed exchange to an outcome; a body that cannot be decoded is malformed."""
        if isinstance(e, httpx.DecodingError):
            return Outcome(PNResult.FORMAT_ERROR, detail=get_short_error_info(e))
        if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)):
            return Outcome(PNResult.TIMEOUT, detail=get_short_error_info(e))
        return Outcome(PNResult.IO_ERROR, detail=get_short_error_info(e))

    # ---------------- policy ---------------- #
    def _decide(
        self, request: Request, outcome: Outcome, attempt: int, policy: RetryPolicy
    ) -> tuple[RetryDecision, float]:
        code = outcome.result
        decision = policy.decide(code, attempt)
        delay = policy.get_delay(attempt - 1) if decision is RetryDecision.RETRY else 0.0
        operation = request.kind.value

        if code not in (PNResult.OK, PNResult.OCCUPIED) and policy.print_errors:
            detail = f" ({outcome.detail})" if outcome.detail else ""
            if decision is RetryDecision.RETRY:
                self.logger.warning(
                    f"{operation} error: {code.description}{detail},"
                    f" retry {attempt}/{policy.max_retries} in {delay:.2f}s",
                    result=code.name,
                )
            else:
                self.logger.error(
                    f"{operation} failed: {code.description}{detail}",
                    result=code.name,
                    attempts=attempt,
                )

        if self.metrics is not None:
            if decision is RetryDecision.RETRY:
                self.metrics.retry(operation, code.name)
            else:
                self.metrics.completion(operation, code.name)

        return decision, delay

    def _span(self, request: Request):
        if self.tracer is None:
            return nullcontext()
        return self.tracer.start_as_current_span(
            f"pubnub.{request.kind.value}",
            attributes={"pubnub.channels": ",".join(request.channels)},
        )

    def _record_exchange(self, request: Request, begin: float) -> None:
        if self.metrics is not None:
            self.metrics.exchange(request.kind.value, (time.perf_counter() - begin) * 1000.0)

    # ---------------- blocking mode ---------------- #
    def run(
        self, request: Request, policy: RetryPolicy, abandon: threading.Event
    ) -> tuple[Outcome, int]:
        """Dispatch ``request`` in the calling thread, retrying per ``policy``.

        Blocks for up to ``request.timeout`` per attempt plus retry delays.
        Setting ``abandon`` (from another thread) makes the call return a
        CANCELLED outcome at the next opportunity.

        Returns:
            The final outcome and the number of attempts made.
        """
        attempt = 0
        with self._span(request) as span:
            while True:
                attempt += 1
                self.logger.debug(f"{request.kind.value} attempt {attempt}: {request.url}")

                begin = time.perf_counter()
                try:
                    response = self.transport.get(request.url, request.query, request.timeout)
                except httpx.RequestError as e:
                    outcome = self.exchange_error(e)
                except RuntimeError:
                    # httpx refuses to use a client closed under our feet.
                    if not abandon.is_set():
                        raise
                    outcome = CANCELLED
                else:
                    outcome = self.classify(request, response)
                self._record_exchange(request, begin)

                if abandon.is_set():
                    return CANCELLED, attempt

                decision, delay = self._decide(request, outcome, attempt, policy)
                if decision is RetryDecision.DELIVER:
                    if span is not None:
                        span.set_attribute("pubnub.result", outcome.result.name)
                        span.set_attribute("pubnub.attempts", attempt)
                    return outcome, attempt

                if abandon.wait(delay):
                    return CANCELLED, attempt

    # ---------------- event-driven mode ---------------- #
    async def arun(self, request: Request, policy: RetryPolicy) -> tuple[Outcome, int]:
        """Dispatch ``request`` on the running event loop, retrying per ``policy``.

        Each exchange is bounded by ``request.timeout`` through
        ``asyncio.wait_for`` in addition to the httpx timeouts. Cancelling the
        enclosing task abandons the request.
        """
        attempt = 0
        with self._span(request) as span:
            while True:
                attempt += 1
                self.logger.debug(f"{request.kind.value} attempt {attempt}: {request.url}")

                begin = time.perf_counter()
                try:
                    response = await asyncio.wait_for(
                        self.transport.aget(request.url, request.query, request.timeout),
                        request.timeout,
                    )
                except (httpx.RequestError, asyncio.TimeoutError) as e:
                    outcome = self.exchange_error(e)
                else:
                    outcome = self.classify(request, response)
                self._record_exchange(request, begin)

                decision, delay = self._decide(request, outcome, attempt, policy)
                if decision is RetryDecision.DELIVER:
                    if span is not None:
                        span.set_attribute("pubnub.result", outcome.result.name)
                        span.set_attribute("pubnub.attempts", attempt)
                    return outcome, attempt

                await asyncio.sleep(delay)
