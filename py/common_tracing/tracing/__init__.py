"""Process wide logging and tracing on open telemetry, with file, console and otlp sinks."""

from ._config import Config, ConsoleSink, OTLPSink, ResolvedConfig, SentrySink, resolve_config
from ._errors import AlreadyInitializedError, ConfigError, NotInitializedError, TracingError
from ._global import (
    TRACING,
    get_guard,
    init_default_ut_tracing,
    init_global_tracing,
    init_logging,
    init_meta_ut_tracing,
    init_query_logger,
)
from ._guard import TracingGuard
from ._levels import OFF, TRACE, LevelFilter, parse_level

__all__ = [
    "TRACING",
    "OFF",
    "TRACE",
    "AlreadyInitializedError",
    "Config",
    "ConfigError",
    "ConsoleSink",
    "LevelFilter",
    "NotInitializedError",
    "OTLPSink",
    "ResolvedConfig",
    "SentrySink",
    "TracingError",
    "TracingGuard",
    "get_guard",
    "init_default_ut_tracing",
    "init_global_tracing",
    "init_logging",
    "init_meta_ut_tracing",
    "init_query_logger",
    "parse_level",
    "resolve_config",
]
