import os
import pathlib
import sys
import tempfile
import typing as tp

from ._errors import ConfigError
from ._levels import LevelFilter, LevelLike, parse_level

if tp.TYPE_CHECKING:
    import sentry_sdk.transport
    from _typeshed import StrPath

# Overrides the configured level directives when set, e.g. "warn,myapp.db=debug":
LEVEL_ENV_VAR = "COMMON_TRACING_LOG"
# Enables the otlp sink on this local port if one isn't configured:
OTLP_PORT_ENV_VAR = "COMMON_TRACING_OTLP_PORT"
# Enables the sentry sink with this dsn if one isn't configured:
SENTRY_DSN_ENV_VAR = "COMMON_TRACING_SENTRY_DSN"

DEFAULT_DIR = os.path.join(".common_tracing", "logs")
DEFAULT_LEVEL = "INFO"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_BACKUPS = 24

Rotation = tp.Literal["hourly", "daily", "size", "never"]
_ROTATIONS: tuple[str, ...] = tp.get_args(Rotation)


class ConsoleSink(tp.TypedDict):
    # Will log this level and up, can only be stricter than the global level. Defaults to the global level:
    from_level: tp.NotRequired[LevelLike]
    # Show spans in console, if true will be shown dimmed as logs are usually more important on the console.
    spans: tp.NotRequired[bool]
    # Optionally overwrite the writer from sys.stdout, useful to store during e.g. testing:
    writer: tp.NotRequired[tp.IO]


class OTLPSink(tp.TypedDict):
    # Will log this level and up, defaults to the global level:
    from_level: tp.NotRequired[LevelLike]
    # The local port to speak to the local open telemetry collector on:
    port: int


class SentrySink(tp.TypedDict):
    # Warnings and errors are sent as events, lower levels are attached to them as breadcrumbs:
    dsn: str
    # Replaces sentry's http transport, e.g. to collect events during testing:
    transport: tp.NotRequired["sentry_sdk.transport.Transport"]


class Config(tp.TypedDict, total=False):
    # Directory the log file is written to, created if missing:
    dir: "StrPath"
    # Minimum level, or directives like "warn,myapp.db=debug":
    level: LevelLike
    # Additional console output, none if missing:
    extra_sink: ConsoleSink | None
    # Open telemetry collector, none if missing:
    otlp: OTLPSink | None
    # Sentry error reporting, none if missing:
    sentry: SentrySink | None
    # When to start a new file, the previous one is renamed with a suffix:
    rotation: Rotation
    # Size threshold for rotation="size":
    max_bytes: int
    # Will keep this many rotated files:
    max_backups: int
    # Also write a line to the file when a span starts, not just when it ends:
    span_events: bool
    # Add the thread name and id to each log:
    thread_info: bool


class ResolvedConsoleSink(tp.TypedDict):
    levels: LevelFilter
    spans: bool
    writer: tp.IO


class ResolvedOTLPSink(tp.TypedDict):
    levels: LevelFilter
    port: int


class ResolvedSentrySink(tp.TypedDict):
    dsn: str
    transport: "sentry_sdk.transport.Transport | None"


class ResolvedConfig(tp.TypedDict):
    service_name: str
    dir: pathlib.Path
    levels: LevelFilter
    extra_sink: ResolvedConsoleSink | None
    otlp: ResolvedOTLPSink | None
    sentry: ResolvedSentrySink | None
    rotation: Rotation
    max_bytes: int
    max_backups: int
    span_events: bool
    thread_info: bool


def resolve_config(service_name: str, config: Config | None = None) -> ResolvedConfig:
    """Validate the config and fill in defaults and env overrides. Doesn't touch the filesystem."""
    config = config or {}
    validate_service_name(service_name)

    level_src: LevelLike = config.get("level", DEFAULT_LEVEL)
    env_level = os.environ.get(LEVEL_ENV_VAR, "").strip()
    if env_level:
        level_src = env_level
    levels = LevelFilter.parse(level_src)

    extra: ResolvedConsoleSink | None = None
    extra_src = config.get("extra_sink")
    if extra_src is not None:
        extra = {
            "levels": _sink_levels(levels, extra_src.get("from_level")),
            "spans": extra_src.get("spans", False),
            "writer": extra_src.get("writer", sys.stdout),
        }

    otlp: ResolvedOTLPSink | None = None
    otlp_src = config.get("otlp")
    if otlp_src is None:
        env_port = os.environ.get(OTLP_PORT_ENV_VAR, "").strip()
        if env_port:
            otlp_src = {"port": _parse_port(env_port, OTLP_PORT_ENV_VAR)}
    if otlp_src is not None:
        otlp = {
            "levels": _sink_levels(levels, otlp_src.get("from_level")),
            "port": _parse_port(otlp_src["port"], "otlp.port"),
        }

    sentry: ResolvedSentrySink | None = None
    sentry_src = config.get("sentry")
    if sentry_src is None:
        env_dsn = os.environ.get(SENTRY_DSN_ENV_VAR, "").strip()
        if env_dsn:
            sentry_src = {"dsn": env_dsn}
    if sentry_src is not None:
        dsn = sentry_src.get("dsn")
        if not isinstance(dsn, str) or not dsn.strip():
            raise ConfigError(f"Invalid sentry dsn: {dsn!r}.")
        sentry = {"dsn": dsn.strip(), "transport": sentry_src.get("transport")}

    rotation = config.get("rotation", "hourly")
    if rotation not in _ROTATIONS:
        raise ConfigError(
            "Invalid rotation: '{}', expected one of: {}.".format(rotation, ", ".join(_ROTATIONS))
        )

    max_bytes = config.get("max_bytes", DEFAULT_MAX_BYTES)
    max_backups = config.get("max_backups", DEFAULT_MAX_BACKUPS)
    if max_bytes < 0 or max_backups < 0:
        raise ConfigError("max_bytes and max_backups must not be negative.")

    return {
        "service_name": service_name,
        "dir": pathlib.Path(config.get("dir", DEFAULT_DIR)),
        "levels": levels,
        "extra_sink": extra,
        "otlp": otlp,
        "sentry": sentry,
        "rotation": rotation,
        "max_bytes": max_bytes,
        "max_backups": max_backups,
        "span_events": config.get("span_events", False),
        "thread_info": config.get("thread_info", False),
    }


def validate_service_name(service_name: str) -> None:
    if not isinstance(service_name, str) or not service_name.strip():
        raise ConfigError(f"Service name must be a non-empty string, got: {service_name!r}.")
    # Also used as the log filename:
    if any(sep in service_name for sep in ("/", "\\", os.sep)) or service_name in (".", ".."):
        raise ConfigError(f"Service name can't contain path separators, got: '{service_name}'.")


def prepare_log_dir(log_dir: "StrPath") -> pathlib.Path:
    """Create the log directory if missing and make sure it can be written to."""
    path = pathlib.Path(log_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigError(f"Couldn't create log directory '{path}': {e}") from e

    if not path.is_dir():
        raise ConfigError(f"Log directory '{path}' isn't a directory.")

    try:
        with tempfile.TemporaryFile(dir=path):
            pass
    except OSError as e:
        raise ConfigError(f"Log directory '{path}' isn't writable: {e}") from e

    return path


def _sink_levels(levels: LevelFilter, from_level: LevelLike | None) -> LevelFilter:
    if from_level is None:
        return levels
    return levels.raised_to(parse_level(from_level))


def _parse_port(port: tp.Any, src: str) -> int:
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port from {src}: {port!r}.") from None
    if not 0 < value < 65536:
        raise ConfigError(f"Invalid port from {src}: {port!r}, must be 1-65535.")
    return value
