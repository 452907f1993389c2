import logging
import threading
import typing as tp

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import SpanKind, _Links
from opentelemetry.util.types import Attributes

from common_tracing import misc

from ._setup import Providers, close_sentry


class TracingGuard:
    """Keeps a logging/tracing pipeline alive, releasing it flushes everything written so far.

    Release with `.close()` or by leaving a `with` block:

        with init_global_tracing("my-service", "./logs", "info") as guard:
            logging.getLogger(__name__).info("Hello!")
            with guard.span("work"):
                ...

    Records are batched on background threads, anything still queued when
    the guard is dropped without being closed is only written by the
    interpreter's exit hooks.
    """

    service_name: str
    tracer_provider: TracerProvider | None
    logger_provider: LoggerProvider
    tracer: trace.Tracer

    def __init__(
        self,
        service_name: str,
        providers: Providers,
        on_close: "tp.Callable[[TracingGuard], None] | None" = None,
    ):
        self.service_name = service_name
        self.tracer_provider = providers.tracer_provider
        self.logger_provider = providers.logger_provider
        self._providers = providers
        self._on_close = on_close
        self._closed = False
        self._close_lock = threading.Lock()

        if self.tracer_provider is not None:
            self.tracer = self.tracer_provider.get_tracer("common_tracing")
        else:
            self.tracer = trace.NoOpTracer()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def logger(self) -> logging.Logger:
        """The `logging` logger the pipeline is attached to, the root logger for global tracing."""
        return self._providers.logger

    @misc.copy_sig(logging.debug)
    def debug(self, *args, **kwargs):  # type: ignore
        self._providers.logger.debug(*args, **kwargs)

    @misc.copy_sig(logging.info)
    def info(self, *args, **kwargs):  # type: ignore
        self._providers.logger.info(*args, **kwargs)

    @misc.copy_sig(logging.warning)
    def warn(self, *args, **kwargs):  # type: ignore
        self._providers.logger.warning(*args, **kwargs)

    @misc.copy_sig(logging.error)
    def error(self, *args, **kwargs):  # type: ignore
        self._providers.logger.error(*args, **kwargs)

    @misc.copy_sig(logging.critical)
    def crit(self, *args, **kwargs):  # type: ignore
        self._providers.logger.critical(*args, **kwargs)

    # Can't copy sig because different self types, the full interface is repeated to not lose information.
    def span(
        self,
        name: str,
        context: Context | None = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Attributes = None,
        links: _Links = None,
        start_time: int | None = None,
        record_exception: bool = True,
        set_status_on_exception: bool = True,
        end_on_exit: bool = True,
    ):
        """Start a span and make it current, as a context manager or a decorator.

        Logs emitted inside it carry its span id. Same arguments as
        `opentelemetry.trace.Tracer.start_as_current_span`.
        """
        return self.tracer.start_as_current_span(
            name,
            context,
            kind,
            attributes,
            links,
            start_time,
            record_exception,
            set_status_on_exception,
            end_on_exit,
        )

    def flush(self) -> None:
        """Force all queued logs/spans through to their sinks."""
        if self.tracer_provider is not None:
            self.tracer_provider.force_flush()
        self.logger_provider.force_flush()
        for handler in self._providers.file_handlers:
            handler.flush()

    def close(self) -> None:
        """Flush and shut everything down, blocks until done. Later calls do nothing."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

            logger = self._providers.logger
            logger.removeHandler(self._providers.log_handler)
            # Give back what the setup replaced:
            for handler in self._providers.prev_handlers:
                logger.addHandler(handler)
            logger.setLevel(self._providers.prev_level)
            if self._providers.sentry_client is not None:
                close_sentry(self._providers.sentry_client)
            if self.tracer_provider is not None:
                self.tracer_provider.shutdown()
            self.logger_provider.shutdown()
            for handler in self._providers.file_handlers:
                handler.close()

        if self._on_close is not None:
            self._on_close(self)

    def __enter__(self) -> "TracingGuard":
        return self

    def __exit__(self, *args):  # type: ignore
        self.close()

    def __repr__(self) -> str:
        return "<TracingGuard service={!r}{}>".format(
            self.service_name, " closed" if self._closed else ""
        )
