class TracingError(Exception):
    """Base class for everything raised while setting up tracing."""


class ConfigError(TracingError, ValueError):
    """The supplied configuration can't be used, e.g. bad level or unusable log directory."""


class AlreadyInitializedError(TracingError, RuntimeError):
    """Global tracing is already active, release the current guard before initializing again."""


class NotInitializedError(TracingError, RuntimeError):
    """Global tracing was used before being initialized (or after its guard was released)."""
