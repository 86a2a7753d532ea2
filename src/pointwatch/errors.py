class PointWatchError(Exception):
    """Base class for errors raised by pointwatch."""


class ConfigError(PointWatchError):
    """Configuration file is missing a value or holds an invalid one."""


class SensorError(PointWatchError):
    """Motion sensor could not be opened or read."""
