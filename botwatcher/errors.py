"""
Exception hierarchy for BotWatcher.

WatchError is fatal to the run loop. Everything else is scoped to a single
trigger: the handler logs it and the watcher keeps going.
"""


class BotWatcherError(Exception):
    """Base class for all BotWatcher errors."""
    pass


class ConfigError(BotWatcherError):
    """Raised when the config file cannot be parsed."""
    pass


class WatchError(BotWatcherError):
    """Raised when a directory watch cannot be established."""
    pass


class DescriptorError(BotWatcherError):
    """Raised when descriptor content fails validation."""

    def __init__(self, message: str, token: str = ""):
        super().__init__(message)
        self.token = token


class ReadError(BotWatcherError):
    """Raised when a descriptor file cannot be read."""
    pass


class LaunchError(BotWatcherError):
    """Raised when the launcher executable cannot be started."""
    pass


class CompletionTimeout(BotWatcherError):
    """Raised when a job's marker file does not arrive within the configured timeout."""
    pass
