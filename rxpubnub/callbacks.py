"""Completion delivery and response ownership.

Every finished operation is delivered exactly once: first to the per-call
handler (or, when none was given, the matching :class:`Callbacks` method),
then to the context's ``completions`` observable. Handlers see the decoded
payload as a :class:`~rxpubnub.result.BorrowedResponse`; once delivery
returns the borrow is released. The completion returned to the caller
always carries an owned response.
"""

from typing import Any

from reactivex.subject import Subject

from .operations import Handler, Outcome, Request
from .result import BorrowedResponse, Completion, OperationKind, OwnedResponse, PNResult
from .telemetry.logger import OTelLogger
from .utils import get_full_error_info


class Callbacks:
    """Default completion handlers of a context, one per operation kind.

    Subclass and override the ones you care about; the base implementations
    do nothing. Every method receives the owning context and the
    :class:`~rxpubnub.result.Completion`.
    """

    def on_publish(self, pubnub, completion: Completion) -> None:
        pass

    def on_subscribe(self, pubnub, completion: Completion) -> None:
        pass

    def on_history(self, pubnub, completion: Completion) -> None:
        pass

    def on_here_now(self, pubnub, completion: Completion) -> None:
        pass

    def on_time(self, pubnub, completion: Completion) -> None:
        pass

    def for_kind(self, kind: OperationKind) -> Handler:
        return getattr(self, f"on_{kind.value}")


class CompletionDelivery:
    """Builds completions from dispatch outcomes and hands them out.

    Args:
        owner: The context passed as first argument to every handler.
        callbacks: Fallback handlers used when a call supplies none.
        subject: Observable sink receiving every delivered completion.
        logger: Receives handler failures at ERROR.
    """

    def __init__(self, owner: Any, callbacks: Callbacks, subject: Subject, logger: OTelLogger):
        self.owner = owner
        self.callbacks = callbacks
        self.subject = subject
        self.logger = logger

    def completion(
        self, request: Request, outcome: Outcome, attempts: int
    ) -> tuple[Completion, BorrowedResponse | None]:
        """Split an outcome into the borrowed view for handlers and the owned result."""
        borrowed = None
        if outcome.value is not None:
            borrowed = BorrowedResponse(outcome.value)
        completion = Completion(
            kind=request.kind,
            result=outcome.result,
            response=borrowed,
            channels=tuple(outcome.channels),
            call_data=request.call_data,
            attempts=attempts,
        )
        return completion, borrowed

    def deliver(self, request: Request, outcome: Outcome, attempts: int) -> Completion:
        """Run the handlers for ``outcome`` and return the owned completion."""
        borrowed_completion, borrowed = self.completion(request, outcome, attempts)
        handler = request.handler or self.callbacks.for_kind(request.kind)

        try:
            self._call(handler, borrowed_completion)
            self._emit(borrowed_completion)
        finally:
            if borrowed is not None:
                borrowed.release()

        return Completion(
            kind=request.kind,
            result=outcome.result,
            response=OwnedResponse(outcome.value) if outcome.value is not None else None,
            channels=tuple(outcome.channels),
            call_data=request.call_data,
            attempts=attempts,
        )

    def occupied(self, request: Request) -> Completion:
        """Deliver OCCUPIED for a call rejected by the single-flight guard."""
        return self.deliver(request, Outcome(PNResult.OCCUPIED), 0)

    def _call(self, handler: Handler, completion: Completion) -> None:
        try:
            handler(self.owner, completion)
        except Exception as e:
            self.logger.error(
                f"{completion.kind.value} handler raised:\n{get_full_error_info(e)}",
                result=completion.result.name,
            )

    def _emit(self, completion: Completion) -> None:
        try:
            self.subject.on_next(completion)
        except Exception as e:
            self.logger.error(
                f"{completion.kind.value} observer raised:\n{get_full_error_info(e)}",
                result=completion.result.name,
            )
