import logging
import typing as tp
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler

from opentelemetry.sdk._logs import LogRecord
from opentelemetry.sdk.trace import ReadableSpan

from ._formatting import (
    file_log_formatter,
    file_span_formatter,
    file_span_start_formatter,
    query_log_formatter,
)

if tp.TYPE_CHECKING:
    from _typeshed import StrPath

    from ._config import Rotation

_Record = tp.Union[LogRecord, ReadableSpan]


class _OtelRecordMixin:
    """Makes a logging.handlers file handler accept open telemetry's log records and spans instead of logging.LogRecord."""

    _compact: bool = False

    def emit(self, record: _Record) -> None:  # type: ignore[override]
        """https://github.com/python/cpython/blob/3.12/Lib/logging/handlers.py#L65"""
        # Log and span exporters run on separate batch threads but share the file:
        with self.lock:  # type: ignore
            if self.shouldRollover(record):  # type: ignore
                self.doRollover()  # type: ignore
            logging.FileHandler.emit(self, record)  # type: ignore

    def format(self, record: _Record) -> str:  # type: ignore[override]
        if isinstance(record, ReadableSpan):
            if record.end_time is None:
                return file_span_start_formatter(record).rstrip()
            return file_span_formatter(record).rstrip()
        if self._compact:
            return query_log_formatter(record).rstrip()
        return file_log_formatter(record).rstrip()


class CustomRotatingFileHandler(_OtelRecordMixin, RotatingFileHandler):
    """Size based rotation, max_bytes=0 never rotates."""


class CustomTimedRotatingFileHandler(_OtelRecordMixin, TimedRotatingFileHandler):
    """Time based rotation, rotated files get a timestamp suffix."""


OtelFileHandler = tp.Union[CustomRotatingFileHandler, CustomTimedRotatingFileHandler]


def make_file_handler(
    logpath: "StrPath",
    rotation: "Rotation",
    max_bytes: int,
    max_backups: int,
    compact: bool = False,
) -> OtelFileHandler:
    handler: OtelFileHandler
    if rotation == "hourly":
        handler = CustomTimedRotatingFileHandler(
            logpath, when="H", backupCount=max_backups, encoding="utf-8"
        )
    elif rotation == "daily":
        handler = CustomTimedRotatingFileHandler(
            logpath, when="midnight", backupCount=max_backups, encoding="utf-8"
        )
    elif rotation == "size":
        handler = CustomRotatingFileHandler(
            logpath, maxBytes=max_bytes, backupCount=max_backups, encoding="utf-8"
        )
    else:
        handler = CustomRotatingFileHandler(logpath, maxBytes=0, encoding="utf-8")
    handler._compact = compact
    return handler
