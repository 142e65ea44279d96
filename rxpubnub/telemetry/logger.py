"""OTel logger wrapper and log context for structured observability.

Provides :class:`OTelLogger`, a thin wrapper around the OTel Logger API
with convenience ``info``/``debug``/``warning``/``error`` methods, and
:class:`LogContext`, an immutable bundle of dimensional log attributes
describing which context and operation a record belongs to.

Also contains :func:`format_log_record`, used by the console exporter.
"""

import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from opentelemetry._logs import LogRecord, SeverityNumber

# =============================================================================
# LogContext
# =============================================================================


@dataclass(frozen=True)
class LogContext:
    """Immutable bundle of dimensional log attributes.

    Automatically attached to every log record emitted by an
    OTelLogger carrying this context.
    """

    service: str = ""
    origin: str = ""
    client_uuid: str = ""
    operation: str = ""
    channels: str = ""

    def as_attributes(self) -> dict[str, str]:
        """Convert to OTel log record attributes dict. Omits empty values."""
        attrs: dict[str, str] = {}
        if self.service:
            attrs["service.name"] = self.service
        if self.origin:
            attrs["pubnub.origin"] = self.origin
        if self.client_uuid:
            attrs["pubnub.uuid"] = self.client_uuid
        if self.operation:
            attrs["pubnub.operation"] = self.operation
        if self.channels:
            attrs["pubnub.channels"] = self.channels
        return attrs

    def child(self, **overrides: str) -> "LogContext":
        """Derive a child context, inheriting parent values for unspecified fields."""
        return LogContext(**{**asdict(self), **overrides})


# =============================================================================
# Log Record Formatting
# =============================================================================


def format_log_record(record: LogRecord) -> str:
    """
    Format a LogRecord as a human-readable line for console output.

    Format: YYYY-MM-DDTHH:MM:SSZ [LEVEL] [trace:span] uuid/operation source\\t: body\\n

    Args:
        record: OpenTelemetry LogRecord to format.

    Returns:
        Formatted string.
    """
    timestamp_ns = record.timestamp or 0
    timestamp_str = datetime.fromtimestamp(timestamp_ns / 1e9, tz=UTC).strftime(
        "%Y-%m-%dT%H:%M:%SZ"
    )
    attrs = record.attributes or {}
    source = attrs.get("log.source", "Unknown")
    client_uuid = attrs.get("pubnub.uuid", "")
    operation = attrs.get("pubnub.operation", "")

    parts = [p for p in (client_uuid, operation) if p]
    dim_prefix = "/".join(str(v) for v in parts) + " " if parts else ""

    trace_part = ""
    if record.trace_id and record.span_id:
        trace_id_hex = f"{record.trace_id:032x}"
        span_id_hex = f"{record.span_id:016x}"
        trace_part = f" [{trace_id_hex[:8]}:{span_id_hex[:8]}]"

    return (
        f"{timestamp_str} [{record.severity_text}]{trace_part} "
        f"{dim_prefix}{source}\t: {record.body}\n"
    )


# =============================================================================
# OTel Logger Wrapper
# =============================================================================


class OTelLogger:
    """Thin wrapper for OTel Logger with convenient emit methods.

    Provides a familiar logging interface (info, debug, warning, error)
    while emitting logs via the OTel API.  Supports dimensional
    ``LogContext`` for structured attributes and severity filtering.

    Example:
        >>> logger = OTelLogger(logger_provider.get_logger("rxpubnub"), source="PubNub")
        >>> logger.info("Request issued", url="http://pubsub.pubnub.com/time/0")
        >>>
        >>> # With LogContext
        >>> ctx = LogContext(service="chat", client_uuid="ab12cd34")
        >>> logger = OTelLogger(provider.get_logger("x"), source="PubNub", context=ctx)
        >>> child = logger.with_context(operation="subscribe", channels="a,b")
    """

    def __init__(
        self,
        logger,
        source: str,
        context: LogContext | None = None,
        min_severity: SeverityNumber | None = None,
    ):
        """Initialize OTel logger wrapper.

        Args:
            logger: OTel Logger instance from LoggerProvider.get_logger()
            source: Source identifier for log.source attribute
            context: Optional LogContext with dimensional attributes.
            min_severity: Optional minimum severity -- records below this
                level are silently dropped.
        """
        self._logger = logger
        self._source = source
        self._context = context or LogContext()
        self._min_severity = min_severity

    @property
    def context(self) -> LogContext:
        return self._context

    def info(self, message: str, **attrs) -> None:
        self._emit(SeverityNumber.INFO, "INFO", message, attrs)

    def debug(self, message: str, **attrs) -> None:
        self._emit(SeverityNumber.DEBUG, "DEBUG", message, attrs)

    def warning(self, message: str, **attrs) -> None:
        self._emit(SeverityNumber.WARN, "WARN", message, attrs)

    def error(self, message: str, **attrs) -> None:
        self._emit(SeverityNumber.ERROR, "ERROR", message, attrs)

    def with_context(self, **overrides) -> "OTelLogger":
        """Derive a child logger inheriting this logger's context with overrides.

        Args:
            **overrides: LogContext field overrides.  A ``source`` key is
                popped and used as the child's source string.

        Returns:
            New OTelLogger sharing the same underlying OTel Logger but
            with a derived LogContext.
        """
        new_source = overrides.pop("source", self._source)
        return OTelLogger(
            self._logger,
            source=new_source,
            context=self._context.child(**overrides),
            min_severity=self._min_severity,
        )

    def _emit(
        self,
        severity_number: SeverityNumber,
        severity_text: str,
        message: str,
        attrs: dict,
    ) -> None:
        if self._min_severity and severity_number.value < self._min_severity.value:
            return
        merged = {
            "log.source": self._source,
            **self._context.as_attributes(),
            **attrs,
        }
        record = LogRecord(
            timestamp=time.time_ns(),
            body=message,
            severity_text=severity_text,
            severity_number=severity_number,
            attributes=merged,
        )
        self._logger.emit(record)
