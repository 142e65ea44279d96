"""Result codes and completion types delivered by a :class:`PubNub` context.

A completion carries two independently owned resources:

* the decoded response payload, handed to completion handlers as a
  :class:`BorrowedResponse` that is released once every handler has
  returned, unless a handler called :meth:`Response.retain`;
* the per-message channel attribution tuple, which always belongs to the
  receiver.
"""

import copy
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

from .mechanism import ResponseReleasedError


class PNResult(IntEnum):
    """Closed set of outcomes. The value of each member is its retry-mask bit."""

    OK = 0
    OCCUPIED = 1
    TIMEOUT = 2
    IO_ERROR = 3
    SERVICE_ERROR = 4
    HTTP_ERROR = 5
    FORMAT_ERROR = 6
    PUBLISH_FAILED = 7
    DECRYPTION_ERROR = 8
    CANCELLED = 9

    @property
    def bit(self) -> int:
        return 1 << self.value

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    PNResult.OK: "success",
    PNResult.OCCUPIED: "another request is already in progress",
    PNResult.TIMEOUT: "timed out before the request completed",
    PNResult.IO_ERROR: "communication error",
    PNResult.SERVICE_ERROR: "transient service error",
    PNResult.HTTP_ERROR: "request rejected by the service",
    PNResult.FORMAT_ERROR: "unexpected response format",
    PNResult.PUBLISH_FAILED: "publish rejected by the service",
    PNResult.DECRYPTION_ERROR: "message could not be decrypted",
    PNResult.CANCELLED: "request abandoned",
}


class OperationKind(Enum):
    """API operation kinds; each maps to one protocol handler."""

    PUBLISH = "publish"
    SUBSCRIBE = "subscribe"
    HISTORY = "history"
    HERE_NOW = "here_now"
    TIME = "time"


class Response:
    """Decoded response payload with an explicit ownership contract."""

    owned: bool = False

    @property
    def value(self) -> Any:
        raise NotImplementedError

    def retain(self) -> "OwnedResponse":
        raise NotImplementedError


class OwnedResponse(Response):
    """A response that belongs to the receiver and stays valid indefinitely."""

    owned = True

    def __init__(self, value: Any):
        self._value = value

    @property
    def value(self) -> Any:
        return self._value

    def retain(self) -> "OwnedResponse":
        return self

    def __repr__(self) -> str:
        return f"OwnedResponse({self._value!r})"


class BorrowedResponse(Response):
    """A view valid only while the completion handler runs.

    Handlers that need the payload afterwards must call :meth:`retain`,
    which detaches a deep copy. Reading :attr:`value` after release raises
    :class:`~rxpubnub.mechanism.ResponseReleasedError`.
    """

    def __init__(self, value: Any):
        self._value = value
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def value(self) -> Any:
        if self._released:
            raise ResponseReleasedError(
                RuntimeError("response already released"),
                source="BorrowedResponse",
                note="retain() the response inside the handler to keep it",
            )
        return self._value

    def retain(self) -> OwnedResponse:
        return OwnedResponse(copy.deepcopy(self.value))

    def release(self) -> None:
        self._released = True
        self._value = None

    def __repr__(self) -> str:
        if self._released:
            return "BorrowedResponse(<released>)"
        return f"BorrowedResponse({self._value!r})"


@dataclass(frozen=True)
class Completion:
    """Outcome of one API operation.

    Attributes:
        kind: Operation that produced this completion.
        result: Final result code after any retries.
        response: Decoded payload, or None when the operation produced none.
        channels: For subscribe, the originating channel of each message,
            exactly one entry per delivered message. Empty otherwise.
        call_data: Opaque value supplied by the caller with the operation.
        attempts: Number of network exchanges spent on the operation.
    """

    kind: OperationKind
    result: PNResult
    response: Response | None = None
    channels: tuple[str, ...] = ()
    call_data: Any = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.result is PNResult.OK

    @property
    def value(self) -> Any:
        """Shortcut for ``response.value``; None when there is no response."""
        if self.response is None:
            return None
        return self.response.value

    def messages(self) -> list[tuple[str, Any]]:
        """Pair every delivered subscribe message with its channel."""
        if self.response is None:
            return []
        return list(zip(self.channels, self.response.value))
