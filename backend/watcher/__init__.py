"""
AssetWatch Watcher Package.

File system watching, debouncing and watch orchestration.
Requires Python 3.11+.
"""

from watcher.debouncer import DebounceGate
from watcher.events import ChangeEvent, ChangeKind, EventEmitter, SessionName
from watcher.orchestrator import WatchOrchestrator
from watcher.session import SessionState, WatchSession

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "DebounceGate",
    "EventEmitter",
    "SessionName",
    "SessionState",
    "WatchOrchestrator",
    "WatchSession",
]
