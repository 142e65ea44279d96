"""OTel log-record exporter for the operator-visible error stream."""

import sys
from collections.abc import Sequence

from opentelemetry.sdk._logs.export import (
    LogRecordExporter,
    LogRecordExportResult,
)

from .logger import format_log_record


class ConsoleLogRecordExporter(LogRecordExporter):
    """OTel LogRecordExporter that writes one human-readable line per record.

    This is where context diagnostics end up by default, so that error
    reports reach stderr without any telemetry setup.

    Example output:
        2026-02-03T10:30:00Z [ERROR] 6c1f.../publish PubNub: publish failed: timeout
    """

    def __init__(self, stream=None):
        # None means "whatever sys.stderr is at export time", so that tests
        # patching sys.stderr observe the output.
        self._stream = stream

    def _target(self):
        return self._stream if self._stream is not None else sys.stderr

    def export(self, batch: Sequence) -> LogRecordExportResult:
        try:
            target = self._target()
            for readable_record in batch:
                target.write(format_log_record(readable_record.log_record))
            target.flush()
            return LogRecordExportResult.SUCCESS
        except Exception:
            return LogRecordExportResult.FAILURE

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        self._target().flush()
        return True
