"""Context configuration.

Provides the typed :class:`PubNubConfig` holding everything a context needs
to build requests, and the library-wide defaults.
"""

import uuid as uuidlib
from dataclasses import dataclass, field

DEFAULT_ORIGIN = "http://pubsub.pubnub.com"

# Timeout sentinel: let the library pick the timeout for the operation kind.
DEFAULT_TIMEOUT = -1

DEFAULT_REQUEST_TIMEOUT = 10.0
# The service holds a subscribe open for up to ~300 s before answering empty.
DEFAULT_SUBSCRIBE_TIMEOUT = 310.0


def generate_uuid() -> str:
    return str(uuidlib.uuid4())


def normalize_origin(origin: str) -> str:
    """Validate an origin URL and strip any trailing slash."""
    if not isinstance(origin, str) or not origin:
        raise ValueError("origin must be a non-empty string")
    if not origin.startswith(("http://", "https://")):
        raise ValueError(f"origin must start with http:// or https://, got {origin!r}")
    return origin.rstrip("/")


@dataclass
class PubNubConfig:
    """Mutable per-context configuration.

    Mutations go through the owning :class:`~rxpubnub.context.PubNub`
    setters, which refuse to run while a request is in flight.
    """

    publish_key: str
    subscribe_key: str
    secret_key: str | None = None
    cipher_key: str | None = None
    origin: str = DEFAULT_ORIGIN
    uuid: str = field(default_factory=generate_uuid)
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    subscribe_timeout: float = DEFAULT_SUBSCRIBE_TIMEOUT

    def __post_init__(self):
        for name in ("publish_key", "subscribe_key"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{name} must be a non-empty string")
        if not self.uuid:
            raise ValueError("uuid must be a non-empty string")
        self.origin = normalize_origin(self.origin)
        if self.timeout <= 0 or self.subscribe_timeout <= 0:
            raise ValueError("default timeouts must be positive")

    def resolve_timeout(self, timeout: float | None, long_poll: bool = False) -> float:
        """Map the :data:`DEFAULT_TIMEOUT` sentinel (or None) to a concrete value."""
        if timeout is None or timeout == DEFAULT_TIMEOUT:
            return self.subscribe_timeout if long_poll else self.timeout
        if timeout <= 0:
            raise ValueError(f"timeout must be positive or DEFAULT_TIMEOUT, got {timeout!r}")
        return float(timeout)
