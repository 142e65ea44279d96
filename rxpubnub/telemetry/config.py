"""OTel provider configuration for rxpubnub contexts.

Provides :func:`configure_telemetry` (tracer + logger providers),
:func:`configure_metrics` (meter provider), and :func:`get_default_providers`
(lazy singleton with console output, used for error diagnostics when the
caller did not inject providers).
"""

import threading

from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import (
    BatchLogRecordProcessor,
    LogRecordExporter,
    SimpleLogRecordProcessor,
)
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from .exporters import ConsoleLogRecordExporter


def _resource(service_name: str, service_version: str) -> Resource:
    return Resource.create(
        {
            "service.name": service_name,
            "service.version": service_version,
        }
    )


def configure_telemetry(
    service_name: str = "rxpubnub",
    service_version: str = "",
    span_exporter: SpanExporter | None = None,
    log_exporter: LogRecordExporter | None = None,
    batch_logs: bool = True,
) -> tuple[TracerProvider, LoggerProvider]:
    """
    Configure OTel providers for rxpubnub contexts.

    Returns the providers for explicit injection into
    :class:`~rxpubnub.context.PubNub` -- does NOT set global providers.

    Args:
        service_name: Service identifier for resource attributes.
        service_version: Service version for resource attributes.
        span_exporter: Optional span exporter; one span is recorded per
            dispatched operation.
        log_exporter: Optional log exporter.
        batch_logs: If True, use BatchLogRecordProcessor
            (better for network exporters). If False, use
            SimpleLogRecordProcessor (immediate, better for console).

    Example:
        >>> tracer_provider, logger_provider = configure_telemetry(
        ...     service_name="chat-bot",
        ...     log_exporter=ConsoleLogRecordExporter(),
        ...     batch_logs=False,
        ... )
        >>> pubnub = PubNub("demo", "demo", logger_provider=logger_provider)
    """
    resource = _resource(service_name, service_version)

    tracer_provider = TracerProvider(resource=resource)
    if span_exporter:
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

    logger_provider = LoggerProvider(resource=resource)
    if log_exporter:
        if batch_logs:
            logger_provider.add_log_record_processor(
                BatchLogRecordProcessor(log_exporter)
            )
        else:
            logger_provider.add_log_record_processor(
                SimpleLogRecordProcessor(log_exporter)
            )

    return tracer_provider, logger_provider


# =============================================================================
# Default Providers
# =============================================================================


_default_tracer_provider: TracerProvider | None = None
_default_logger_provider: LoggerProvider | None = None
_default_lock = threading.Lock()


def get_default_providers(
    service_name: str = "rxpubnub",
) -> tuple[TracerProvider, LoggerProvider]:
    """Get or create default providers with console output.

    Lazily initializes default providers on first call. Returns the same
    providers on subsequent calls (singleton pattern). Records go to stderr
    immediately (non-batched).

    Args:
        service_name: Service name for the default providers (only used on first call).
    """
    global _default_tracer_provider, _default_logger_provider

    with _default_lock:
        if _default_logger_provider is None:
            _default_tracer_provider, _default_logger_provider = configure_telemetry(
                service_name=service_name,
                log_exporter=ConsoleLogRecordExporter(),
                batch_logs=False,  # Immediate output for diagnostics
            )

    # At this point both providers are guaranteed to be initialized
    assert _default_tracer_provider is not None
    return _default_tracer_provider, _default_logger_provider


# =============================================================================
# Metrics Configuration
# =============================================================================


def configure_metrics(
    metric_exporter: MetricExporter,
    service_name: str = "rxpubnub",
    service_version: str = "",
    export_interval_ms: int = 10_000,
) -> MeterProvider:
    """Configure and return an OTel MeterProvider exporting to ``metric_exporter``.

    Args:
        metric_exporter: Destination of the periodic metric exports.
        service_name: Service identifier added to all metrics as a resource
            attribute.
        service_version: Service version resource attribute.
        export_interval_ms: Polling interval for
            ``PeriodicExportingMetricReader`` (milliseconds).  Default 10 s.
    """
    reader = PeriodicExportingMetricReader(
        metric_exporter, export_interval_millis=export_interval_ms
    )
    return MeterProvider(
        resource=_resource(service_name, service_version), metric_readers=[reader]
    )
