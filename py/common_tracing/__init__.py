"""Common tracing: one call to set up process wide logs and traces."""

from importlib.metadata import version

__version__ = version("common-tracing")

from .tracing import (
    TRACING,
    Config,
    ConsoleSink,
    OTLPSink,
    SentrySink,
    TracingGuard,
    init_default_ut_tracing,
    init_global_tracing,
    init_logging,
    init_meta_ut_tracing,
    init_query_logger,
)

__all__ = [
    "TRACING",
    "Config",
    "ConsoleSink",
    "OTLPSink",
    "SentrySink",
    "TracingGuard",
    "init_default_ut_tracing",
    "init_global_tracing",
    "init_logging",
    "init_meta_ut_tracing",
    "init_query_logger",
]
