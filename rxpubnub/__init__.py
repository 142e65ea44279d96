"""Convenience exports for the :mod:`rxpubnub` package."""

from .callbacks import Callbacks  # noqa: F401
from .config import DEFAULT_ORIGIN, DEFAULT_TIMEOUT, PubNubConfig  # noqa: F401
from .context import PubNub  # noqa: F401
from .crypto import PubNubCipher, sign_publish  # noqa: F401
from .mechanism import (  # noqa: F401
    ContextBusyError,
    ContextClosedError,
    DecryptionError,
    PubNubException,
    ResponseReleasedError,
)
from .result import (  # noqa: F401
    BorrowedResponse,
    Completion,
    OperationKind,
    OwnedResponse,
    PNResult,
    Response,
)
from .retry import RETRY_ALL, RETRY_NONE, RetryPolicy, mask_without  # noqa: F401
from .stream import RxSubscriber  # noqa: F401
from .transport import HTTPTransport, initialize  # noqa: F401
from .utils import TaggedData, tag_filter, untag  # noqa: F401

__all__ = [
    "PubNub",
    "PubNubConfig",
    "Callbacks",
    "DEFAULT_ORIGIN",
    "DEFAULT_TIMEOUT",
    "initialize",
    "HTTPTransport",

    # results
    "PNResult",
    "OperationKind",
    "Completion",
    "Response",
    "OwnedResponse",
    "BorrowedResponse",

    # retry
    "RetryPolicy",
    "RETRY_ALL",
    "RETRY_NONE",
    "mask_without",

    # crypto
    "PubNubCipher",
    "sign_publish",

    # errors
    "PubNubException",
    "ContextBusyError",
    "ContextClosedError",
    "ResponseReleasedError",
    "DecryptionError",

    # reactive
    "RxSubscriber",
    "TaggedData",
    "tag_filter",
    "untag",
]
