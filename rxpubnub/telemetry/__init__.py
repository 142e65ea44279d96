"""OpenTelemetry helpers for rxpubnub contexts.

This package provides OTel provider configuration, a structured logger
wrapper, the console log-record exporter, and the dispatcher metrics.
"""

from .config import (
    configure_metrics,
    configure_telemetry,
    get_default_providers,
)
from .exporters import ConsoleLogRecordExporter
from .logger import (
    LogContext,
    OTelLogger,
    format_log_record,
)
from .metrics import DispatchMetrics

__all__ = [
    # config
    "configure_telemetry",
    "configure_metrics",
    "get_default_providers",
    # logger
    "OTelLogger",
    "LogContext",
    "format_log_record",
    # exporters
    "ConsoleLogRecordExporter",
    # metrics
    "DispatchMetrics",
]
