"""Retry policy for failed requests.

A result is retried iff it is recoverable (TIMEOUT, IO_ERROR, SERVICE_ERROR),
its bit is set in ``retry_mask`` and the attempt budget is not exhausted.
OK and OCCUPIED are always delivered, whatever the mask says.
"""

import random
from dataclasses import dataclass
from enum import Enum

from .result import PNResult

RETRY_ALL = ~0
RETRY_NONE = 0

RECOVERABLE = frozenset((PNResult.TIMEOUT, PNResult.IO_ERROR, PNResult.SERVICE_ERROR))
_NEVER_RETRIED = frozenset((PNResult.OK, PNResult.OCCUPIED))


class RetryDecision(Enum):
    RETRY = "retry"
    DELIVER = "deliver"


def mask_without(*codes: PNResult) -> int:
    """Build a mask retrying every recoverable code except ``codes``.

    ``mask_without(PNResult.TIMEOUT)`` is the equivalent of ``~(1 << TIMEOUT)``.
    """
    mask = RETRY_ALL
    for code in codes:
        mask &= ~code.bit
    return mask


def is_recoverable(code: PNResult) -> bool:
    return code in RECOVERABLE


@dataclass
class RetryPolicy:
    """Configurable error retry behaviour for a context.

    Attributes:
        retry_mask: Bit ``1 << code`` enables retrying that result code.
            Defaults to every recoverable code.
        print_errors: Emit a diagnostic for every error outcome, retried or not.
        max_retries: Retries allowed after the first attempt. Must be finite.
        base_delay: Initial delay between retries in seconds.
        max_delay: Maximum delay between retries in seconds.
        backoff_factor: Multiplier for exponential backoff.
        jitter: Randomization factor (0.0-1.0) to prevent thundering herd.
    """

    retry_mask: int = RETRY_ALL
    print_errors: bool = True
    max_retries: int = 5
    base_delay: float = 0.25
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    jitter: float = 0.1  # randomization factor (0.0-1.0)

    def __post_init__(self):
        if self.max_retries is None or self.max_retries < 0:
            raise ValueError(f"max_retries must be a non-negative integer, got {self.max_retries!r}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must lie in [0, 1], got {self.jitter!r}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")

    def allows(self, code: PNResult) -> bool:
        """Whether the mask and the recoverable classification permit a retry."""
        if code in _NEVER_RETRIED:
            return False
        return is_recoverable(code) and bool(self.retry_mask & code.bit)

    def decide(self, code: PNResult, attempt: int) -> RetryDecision:
        """Decide what to do with the outcome of attempt number ``attempt`` (1-based)."""
        if self.allows(code) and attempt <= self.max_retries:
            return RetryDecision.RETRY
        return RetryDecision.DELIVER

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before retry number ``attempt`` (0-indexed).

        Uses exponential backoff with jitter:
        delay = min(base_delay * (backoff_factor ^ attempt), max_delay) +/- jitter
        """
        delay = min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)
        jitter_range = delay * self.jitter
        return max(0.0, delay + random.uniform(-jitter_range, jitter_range))
