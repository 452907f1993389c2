import typing as tp

from opentelemetry.exporter.otlp.proto.grpc._log_exporter import (
    OTLPLogExporter as OTLPLogExporterGRPC,
)
from opentelemetry.sdk._logs import LogData
from opentelemetry.sdk._logs.export import (
    ConsoleLogExporter,
    LogExporter,
    LogExportResult,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from common_tracing import misc

from ._file_handler import OtelFileHandler
from ._levels import LevelFilter, severity_enabled


class CustOTLPLogExporterGRPC(OTLPLogExporterGRPC):  # pragma: no cover (needs a running collector)
    _levels: LevelFilter | None

    @misc.copy_sig(OTLPLogExporterGRPC.__init__)
    def __init__(self, *args, **kwargs):  # type: ignore
        self._levels = None
        super().__init__(*args, **kwargs)

    def with_levels(self, levels: LevelFilter) -> tp.Self:
        self._levels = levels
        return self

    def export(self, batch: tp.Sequence[LogData]) -> LogExportResult:
        return super().export(fil_log_data(batch, self._levels))


class CustConsoleLogExporter(ConsoleLogExporter):
    _levels: LevelFilter | None

    @misc.copy_sig(ConsoleLogExporter.__init__)
    def __init__(self, *args, **kwargs):  # type: ignore
        self._levels = None
        super().__init__(*args, **kwargs)

    def with_levels(self, levels: LevelFilter) -> tp.Self:
        self._levels = levels
        return self

    def export(self, batch: tp.Sequence[LogData]) -> LogExportResult:
        return super().export(fil_log_data(batch, self._levels))


class CustFileLogExporter(LogExporter):
    """Writes log records to a file handler shared with the span exporter, the owner closes the handler."""

    _levels: LevelFilter | None
    _file_handler: OtelFileHandler

    def __init__(self, handler: OtelFileHandler):
        self._levels = None
        self._file_handler = handler
        super().__init__()

    def with_levels(self, levels: LevelFilter) -> tp.Self:
        self._levels = levels
        return self

    def export(self, batch: tp.Sequence[LogData]) -> LogExportResult:
        for log in fil_log_data(batch, self._levels):
            self._file_handler.emit(log.log_record)
        return LogExportResult.SUCCESS

    def shutdown(self) -> None:
        self._file_handler.flush()


class CustFileSpanExporter(SpanExporter):
    _file_handler: OtelFileHandler

    def __init__(self, handler: OtelFileHandler):
        self._file_handler = handler
        super().__init__()

    def export(self, spans: tp.Sequence[ReadableSpan]) -> SpanExportResult:
        for span in spans:
            self._file_handler.emit(span)
        return SpanExportResult.SUCCESS

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        self._file_handler.flush()
        return True

    def shutdown(self) -> None:
        self._file_handler.flush()


def fil_log_data(data: tp.Sequence[LogData], levels: LevelFilter | None) -> tp.Sequence[LogData]:
    assert levels is not None, "with_levels() should have been called!"

    out = []
    for log in data:
        scope = log.instrumentation_scope.name if log.instrumentation_scope else ""
        if severity_enabled(levels, scope, log.log_record.severity_number):
            out.append(log)
    return out
