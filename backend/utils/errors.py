"""
AssetWatch Errors.

Exception hierarchy shared by the watch, dispatch and reload packages.
Requires Python 3.11+.
"""


class AssetWatchError(Exception):
    """Base class for all AssetWatch errors."""


class ConfigurationError(AssetWatchError):
    """Configured paths are missing or malformed."""


class MissingSourceDirectoryError(ConfigurationError):
    """The configured source directory does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Missing source directory: {path}")
        self.path = path


class WatcherError(AssetWatchError):
    """The underlying file watcher failed before it became ready."""


class NotificationServerError(AssetWatchError):
    """The live-reload notification server could not be started."""


class PushError(AssetWatchError):
    """A live-reload notification could not be delivered."""
