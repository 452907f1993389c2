import dataclasses
import logging
import typing as tp

from opentelemetry._logs.severity import _STD_TO_OTEL, SeverityNumber, std_to_otel

from ._errors import ConfigError

# Finer than DEBUG, OpenTelemetry maps anything below DEBUG to UNSPECIFIED:
TRACE = 5
# Above everything, nothing gets through:
OFF = logging.CRITICAL + 10

# A level name like "info" or a numeric `logging` level:
LevelLike = tp.Union[str, int]

logging.addLevelName(TRACE, "TRACE")

_NAMED_LEVELS: dict[str, int] = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRIT": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "OFF": OFF,
}
_NUMERIC_LEVELS = frozenset(_NAMED_LEVELS.values()) | {logging.NOTSET}

# Several stdlib levels share a severity, map back to the lowest of them:
_OTEL_TO_STD: dict[SeverityNumber, int] = {}
for _std, _sev in sorted(_STD_TO_OTEL.items(), reverse=True):
    _OTEL_TO_STD[_sev] = _std


def severity_to_log_level(sev: SeverityNumber | int) -> int:
    if isinstance(sev, int):
        sev = SeverityNumber(sev)

    if sev == SeverityNumber.UNSPECIFIED:
        return TRACE
    return _OTEL_TO_STD[sev]


def log_level_to_severity(level: int) -> SeverityNumber:
    return std_to_otel(level)


def level_name(level: int) -> str:
    """Name of the closest named level at or below `level`, WARNING is shortened to WARN."""
    if level >= logging.CRITICAL:
        return "CRITICAL"
    if level >= logging.ERROR:
        return "ERROR"
    if level >= logging.WARNING:
        return "WARN"
    if level >= logging.INFO:
        return "INFO"
    if level >= logging.DEBUG:
        return "DEBUG"
    return "TRACE"


def parse_level(level: str | int) -> int:
    """Convert a level name (case insensitive) or a named numeric level to a `logging` level.

    Numeric levels between the named ones aren't accepted, OpenTelemetry severities can't represent them.
    """
    if isinstance(level, bool):
        raise ConfigError(f"Invalid log level: {level!r}.")
    if isinstance(level, int):
        if level not in _NUMERIC_LEVELS:
            raise ConfigError(
                "Invalid log level: {!r}, expected one of: {}.".format(
                    level, ", ".join(str(n) for n in sorted(_NUMERIC_LEVELS))
                )
            )
        return level

    try:
        return _NAMED_LEVELS[level.strip().upper()]
    except KeyError:
        raise ConfigError(
            "Invalid log level: '{}', expected one of: {}.".format(
                level, ", ".join(n.lower() for n in _NAMED_LEVELS)
            )
        ) from None


@dataclasses.dataclass(frozen=True)
class LevelFilter:
    """Minimum levels per logger.

    `targets` maps a logger name to the level for it and its dotted children,
    the longest matching target wins, everything else uses `default`.
    """

    default: int = logging.INFO
    targets: dict[str, int] = dataclasses.field(default_factory=dict)

    @classmethod
    def parse(cls, directives: str | int) -> "LevelFilter":
        """Parse e.g. `"warn,myapp.db=debug"`.

        A bare level sets the default, `target=level` sets a logger subtree.
        When only targets are given, everything else is at ERROR.
        """
        if not isinstance(directives, str):
            return cls(default=parse_level(directives))

        default: int | None = None
        targets: dict[str, int] = {}
        for part in directives.split(","):
            part = part.strip()
            if not part:
                continue

            if "=" in part:
                target, _, lvl = part.partition("=")
                target = target.strip()
                if not target:
                    raise ConfigError(f"Invalid level directive: '{part}', missing target.")
                targets[target] = parse_level(lvl)
            else:
                if default is not None:
                    raise ConfigError(
                        f"Invalid level directives: '{directives}', more than one default level."
                    )
                default = parse_level(part)

        if default is None and not targets:
            raise ConfigError(f"Invalid log level: '{directives}', no level given.")

        return cls(default=default if default is not None else logging.ERROR, targets=targets)

    @property
    def lowest(self) -> int:
        return min([self.default, *self.targets.values()])

    def level_for(self, name: str) -> int:
        best: tuple[int, int] | None = None
        for target, lvl in self.targets.items():
            if name == target or name.startswith(target + "."):
                if best is None or len(target) > best[0]:
                    best = (len(target), lvl)
        return best[1] if best is not None else self.default

    def enabled(self, name: str, level: int) -> bool:
        return level >= self.level_for(name)

    def raised_to(self, floor: int) -> "LevelFilter":
        """Copy where no level is lower than `floor`."""
        return LevelFilter(
            default=max(self.default, floor),
            targets={target: max(lvl, floor) for target, lvl in self.targets.items()},
        )

    def __str__(self) -> str:
        parts = [level_name(self.default).lower() if self.default < OFF else "off"]
        parts.extend(
            "{}={}".format(target, level_name(lvl).lower() if lvl < OFF else "off")
            for target, lvl in self.targets.items()
        )
        return ",".join(parts)


def severity_enabled(fil: LevelFilter, scope: str, sev: SeverityNumber | None) -> bool:
    """Whether a record with severity `sev` from logger `scope` passes the filter."""
    # Records without a severity can't be judged, let them through:
    if sev is None:
        return True
    threshold = fil.level_for(scope)
    if threshold >= OFF:
        return False
    return sev.value >= log_level_to_severity(threshold).value
