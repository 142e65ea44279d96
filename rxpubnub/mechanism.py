"""Core error types for :mod:`rxpubnub`.

Network outcomes are reported as :class:`~rxpubnub.result.PNResult` codes;
the exceptions below are reserved for local contract violations on the API
surface.
"""


class PubNubException(Exception):
    """Base class for all rxpubnub exceptions."""

    def __init__(self, exception: Exception, source: str = "Unknown", note: str = ""):
        super().__init__(f"<{source}> {note}: {exception}")
        self.exception = exception
        self.source = source
        self.note = note

    def __str__(self):
        return f"<{self.source}> {self.note}: {self.exception}"


class ContextBusyError(PubNubException):
    """A context setter was called while a request is in flight."""


class ContextClosedError(PubNubException):
    """An operation was attempted on a closed context."""


class ResponseReleasedError(PubNubException):
    """A borrowed response was read after its completion handler returned."""


class DecryptionError(PubNubException):
    """A message body could not be decrypted with the configured cipher key."""
