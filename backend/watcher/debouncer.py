"""
AssetWatch Debounce Gate.

Suppresses repeated change notifications for the same path.
Requires Python 3.11+.
"""

import time
from pathlib import Path

DEFAULT_QUIET_WINDOW_MS = 300


class DebounceGate:
    """
    Tracks recently seen paths and suppresses them inside a quiet window.

    Editors often produce several change notifications for a single save.
    The gate lets the first one through and drops the rest until the path
    has been quiet for the window. Entries older than the window are
    purged lazily on every lookup, so a path present in the table was seen
    within the window.

    Not thread-safe: query it from a single event stream.
    """

    def __init__(self, window_ms: int = DEFAULT_QUIET_WINDOW_MS) -> None:
        """
        Initialize the gate.

        Args:
            window_ms: Quiet window in milliseconds
        """
        self._window = window_ms / 1000.0
        self._recent: dict[str, float] = {}

    def should_process(self, path: str | Path, now: float | None = None) -> bool:
        """
        Check whether a path was not seen recently, recording it if so.

        Args:
            path: Changed file path
            now: Current time in seconds, defaults to a monotonic clock

        Returns:
            True if the path should be processed, False to suppress it
        """
        if now is None:
            now = time.monotonic()
        expire_before = now - self._window

        for key in [k for k, seen in self._recent.items() if seen <= expire_before]:
            del self._recent[key]

        key = str(path)
        if key in self._recent:
            return False

        self._recent[key] = now
        return True

    def reset(self) -> None:
        """Forget every recently seen path."""
        self._recent.clear()

    def __len__(self) -> int:
        return len(self._recent)

    def __contains__(self, path: object) -> bool:
        return str(path) in self._recent
