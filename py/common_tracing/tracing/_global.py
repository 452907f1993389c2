import contextlib
import logging
import os
import threading
import typing as tp

import lazy_object_proxy

from ._config import Config, ConsoleSink, resolve_config, validate_service_name
from ._errors import AlreadyInitializedError, NotInitializedError
from ._guard import TracingGuard
from ._levels import LevelLike
from ._setup import prepare_providers, prepare_query_providers

if tp.TYPE_CHECKING:
    from _typeshed import StrPath

_LOCK = threading.RLock()
_GUARD: TracingGuard | None = None

_UT_LOCK = threading.Lock()
# Keyed by service name, one per unit test helper:
_UT_GUARDS: dict[str, TracingGuard] = {}


def _get_global_guard() -> TracingGuard:
    guard = get_guard()
    if guard is None:
        raise NotInitializedError("Global tracing not yet initialized, call init_logging() first.")
    return guard


# The accessor to the active global guard:
TRACING: TracingGuard = lazy_object_proxy.Proxy(_get_global_guard)


def get_guard() -> TracingGuard | None:
    """The guard of the active global tracing, None when not initialized or already released."""
    with _LOCK:
        return _GUARD


def init_global_tracing(
    service_name: str,
    log_dir: "StrPath",
    level: LevelLike,
    extra_sink: ConsoleSink | None = None,
) -> TracingGuard:
    """Install process wide logging and tracing, writing to `<log_dir>/<service_name>.log`.

    `level` is the minimum level (e.g. "info") or directives like "warn,myapp.db=debug".
    `extra_sink` additionally prints to a console stream.

    Raises ConfigError for a bad level or unusable directory, and
    AlreadyInitializedError while a previous guard is still open.
    """
    return init_logging(service_name, {"dir": log_dir, "level": level, "extra_sink": extra_sink})


def init_logging(service_name: str, config: Config | None = None) -> TracingGuard:
    """Same as `init_global_tracing()`, configured from a `Config` dict with defaults for missing keys."""
    global _GUARD

    resolved = resolve_config(service_name, config)
    with _LOCK:
        if _GUARD is not None and not _GUARD.closed:
            raise AlreadyInitializedError(
                "Global tracing already initialized for '{}', close its guard first.".format(
                    _GUARD.service_name
                )
            )
        guard = TracingGuard(service_name, prepare_providers(resolved), on_close=_release)
        _GUARD = guard
        _reset_accessor()
    return guard


def init_query_logger(log_name: str, log_dir: "StrPath") -> tuple[TracingGuard, logging.Logger]:
    """A standalone logger writing bare messages to `<log_dir>/<log_name>.log`.

    Doesn't propagate to, or replace, the global setup.
    """
    validate_service_name(log_name)
    guard = TracingGuard(log_name, prepare_query_providers(log_name, log_dir))
    return guard, guard.logger


def init_default_ut_tracing() -> TracingGuard:
    """Global tracing for unit tests, to `_logs_unittest/unittest.log` at debug.

    Only initializes once per process, again if the guard has since been closed.
    """
    return _init_ut_tracing("unittest", {"dir": "_logs_unittest", "level": "DEBUG"})


def init_meta_ut_tracing() -> TracingGuard:
    """Like `init_default_ut_tracing()`, for tests needing more detail.

    Writes to `.common_tracing/logs_unittest/unittest-meta.log` at debug, with
    a line when each span starts as well as ends, and the thread on each log.
    Raises AlreadyInitializedError while other global tracing is open.
    """
    return _init_ut_tracing(
        "unittest-meta",
        {
            "dir": os.path.join(".common_tracing", "logs_unittest"),
            "level": "DEBUG",
            "span_events": True,
            "thread_info": True,
        },
    )


def _init_ut_tracing(service_name: str, config: Config) -> TracingGuard:
    with _UT_LOCK:
        guard = _UT_GUARDS.get(service_name)
        if guard is None or guard.closed:
            guard = init_logging(service_name, config)
            _UT_GUARDS[service_name] = guard
        return guard


def _release(guard: TracingGuard) -> None:
    global _GUARD
    with _LOCK:
        if _GUARD is guard:
            _GUARD = None
            _reset_accessor()


def _reset_accessor() -> None:
    # The proxy caches what it resolved to, forget it so the next access sees the current guard:
    with contextlib.suppress(AttributeError):
        del TRACING.__wrapped__
