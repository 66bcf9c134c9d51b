"""Exceptions raised by the watchdog."""


class WatchdogError(Exception):
    """Base class for watchdog errors."""


class ConfigError(WatchdogError):
    """Invalid or incomplete configuration."""


class ReferenceStoreError(WatchdogError):
    """The database holding image references could not be read."""
