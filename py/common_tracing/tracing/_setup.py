import logging
import pathlib
import platform
import typing as tp

import opentelemetry._logs._internal
import opentelemetry.trace
import sentry_sdk
from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as OTLPSpanExporterGRPC,
)
from opentelemetry.sdk import resources
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from sentry_sdk.integrations.logging import LoggingIntegration

from common_tracing.misc import is_tcp_port_listening

from ._config import ResolvedConfig, ResolvedSentrySink, Rotation, prepare_log_dir
from ._errors import ConfigError
from ._exporters import (
    CustConsoleLogExporter,
    CustFileLogExporter,
    CustFileSpanExporter,
    CustOTLPLogExporterGRPC,
)
from ._file_handler import OtelFileHandler, make_file_handler
from ._formatting import console_log_formatter, console_span_formatter
from ._levels import TRACE, LevelFilter


class Providers(tp.NamedTuple):
    tracer_provider: TracerProvider | None
    logger_provider: LoggerProvider
    log_handler: LoggingHandler
    logger: logging.Logger
    file_handlers: list[OtelFileHandler]
    # What the logger had before ours replaced it, put back on close:
    prev_handlers: list[logging.Handler]
    prev_level: int
    sentry_client: "sentry_sdk.Client | None" = None


def _resource(service_name: str) -> resources.Resource:
    return resources.Resource(
        attributes={
            resources.SERVICE_NAME: service_name,
            resources.SERVICE_INSTANCE_ID: platform.uname().node,  # Instead of os.uname().nodename to work with windows as well.
        }
    )


def prepare_providers(config: ResolvedConfig) -> Providers:
    """Build the providers and sinks and install them as the process wide defaults."""
    log_dir = prepare_log_dir(config["dir"])
    levels = config["levels"]
    console = config["extra_sink"]
    otlp = config["otlp"]

    endpoint: str | None = None
    if otlp is not None:
        if not is_tcp_port_listening("localhost", otlp["port"]):
            raise ConnectionError(
                "Couldn't connect to a collector locally on port {}, are you sure the collector is running?".format(
                    otlp["port"]
                )
            )
        endpoint = "localhost:{}".format(otlp["port"])

    resource = _resource(config["service_name"])
    trace_provider = TracerProvider(resource=resource)
    log_provider = LoggerProvider(resource=resource)
    log_handler = LoggingHandler(logger_provider=log_provider, level=logging.NOTSET)
    if config["thread_info"]:
        log_handler.addFilter(_ThreadInfoFilter())

    file_handler = _open_file_handler(
        log_dir / "{}.log".format(config["service_name"]),
        config["rotation"],
        max_bytes=config["max_bytes"],
        max_backups=config["max_backups"],
    )
    log_provider.add_log_record_processor(
        BatchLogRecordProcessor(CustFileLogExporter(handler=file_handler).with_levels(levels))
    )
    trace_provider.add_span_processor(
        BatchSpanProcessor(CustFileSpanExporter(handler=file_handler))
    )
    if config["span_events"]:
        trace_provider.add_span_processor(_SpanStartProcessor(file_handler))

    if otlp is not None and endpoint is not None:  # pragma: no cover (needs a running collector)
        log_provider.add_log_record_processor(
            BatchLogRecordProcessor(
                CustOTLPLogExporterGRPC(endpoint=endpoint, insecure=True).with_levels(
                    otlp["levels"]
                )
            )
        )
        trace_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporterGRPC(endpoint=endpoint, insecure=True))
        )

    if console is not None:
        writer = console["writer"]
        show_spans = console["spans"]
        log_provider.add_log_record_processor(
            BatchLogRecordProcessor(
                CustConsoleLogExporter(
                    out=writer,
                    formatter=lambda record: console_log_formatter(record, show_spans),
                ).with_levels(console["levels"])
            )
        )
        if show_spans:
            trace_provider.add_span_processor(
                BatchSpanProcessor(ConsoleSpanExporter(out=writer, formatter=console_span_formatter))
            )

    sentry_client = None
    if config["sentry"] is not None:
        sentry_client = _init_sentry(config["sentry"], levels)

    root = logging.getLogger()
    prev_handlers = list(root.handlers)
    prev_level = root.level
    # Sinks only ever raise the threshold, so the global directives decide what reaches the handler:
    root.setLevel(levels.lowest)
    # Clear any existing handlers, so ours is the only one: (file/console/otlp all go through it)
    for handler in prev_handlers:
        root.removeHandler(handler)
    root.addHandler(log_handler)

    _install_global(trace_provider, log_provider)

    return Providers(
        trace_provider,
        log_provider,
        log_handler,
        root,
        [file_handler],
        prev_handlers,
        prev_level,
        sentry_client,
    )


def prepare_query_providers(log_name: str, log_dir: str) -> Providers:
    """A standalone logger writing bare messages to its own file, nothing global is touched."""
    path = prepare_log_dir(log_dir)

    log_provider = LoggerProvider(resource=_resource(log_name), shutdown_on_exit=True)
    file_handler = _open_file_handler(
        path / "{}.log".format(log_name), "hourly", max_bytes=0, max_backups=0, compact=True
    )
    log_provider.add_log_record_processor(
        BatchLogRecordProcessor(
            CustFileLogExporter(handler=file_handler).with_levels(LevelFilter(default=TRACE))
        )
    )
    log_handler = LoggingHandler(logger_provider=log_provider, level=logging.NOTSET)

    logger = logging.getLogger("common_tracing.query.{}".format(log_name))
    prev_handlers = list(logger.handlers)
    prev_level = logger.level
    logger.setLevel(TRACE)
    logger.propagate = False
    for handler in prev_handlers:
        logger.removeHandler(handler)
    logger.addHandler(log_handler)

    return Providers(
        None, log_provider, log_handler, logger, [file_handler], prev_handlers, prev_level
    )


class _ThreadInfoFilter(logging.Filter):
    """Adds the emitting thread to the record, so it ends up in the log's attributes."""

    def filter(self, record: logging.LogRecord) -> bool:
        setattr(record, "thread.name", record.threadName)
        setattr(record, "thread.id", record.thread)
        return True


class _SpanStartProcessor(SpanProcessor):
    """Writes a line as soon as a span starts, the batched exporter only sees finished ones."""

    def __init__(self, handler: OtelFileHandler):
        self._handler = handler

    def on_start(self, span: ReadableSpan, parent_context: tp.Any = None) -> None:  # type: ignore[override]
        self._handler.emit(span)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        self._handler.flush()
        return True


def _init_sentry(sink: ResolvedSentrySink, levels: LevelFilter) -> "sentry_sdk.Client":
    # Warnings and up become events, everything the directives let through is kept as a breadcrumb:
    sentry_sdk.init(
        dsn=sink["dsn"],
        transport=sink["transport"],
        default_integrations=False,
        integrations=[LoggingIntegration(level=levels.lowest, event_level=logging.WARNING)],
    )
    return sentry_sdk.get_client()


def close_sentry(client: "sentry_sdk.Client") -> None:
    client.close()
    # Stop the logging integration reporting to the closed client:
    if sentry_sdk.get_client() is client:
        sentry_sdk.get_global_scope().set_client(None)


def _open_file_handler(
    logpath: pathlib.Path, rotation: Rotation, max_bytes: int, max_backups: int, compact: bool = False
) -> OtelFileHandler:
    # The directory is usable, but the file itself can still be e.g. a directory or unreadable:
    try:
        return make_file_handler(logpath, rotation, max_bytes, max_backups, compact=compact)
    except OSError as e:
        raise ConfigError("Couldn't open log file '{}': {}".format(logpath, e)) from e


def _install_global(trace_provider: TracerProvider, log_provider: LoggerProvider) -> None:
    # The setters only work once per process, replace directly after a previous guard was released:
    if opentelemetry.trace._TRACER_PROVIDER is not None:
        opentelemetry.trace._TRACER_PROVIDER = trace_provider
    else:
        trace.set_tracer_provider(trace_provider)

    if opentelemetry._logs._internal._LOGGER_PROVIDER is not None:
        opentelemetry._logs._internal._LOGGER_PROVIDER = log_provider
    else:
        set_logger_provider(log_provider)
