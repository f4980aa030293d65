"""
AssetWatch Change Events.

Typed change events and the publish/subscribe surface sessions expose.
Requires Python 3.11+.
"""

import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from utils.logger import LoggerMixin


class SessionName(str, Enum):
    """Identity of a watch session."""

    SOURCE = "source"
    DEST = "destination"


class ChangeKind(str, Enum):
    """Kinds of events a watch session emits."""

    ADD = "add"
    ADD_DIR = "addDir"
    CHANGE = "change"
    UNLINK = "unlink"
    UNLINK_DIR = "unlinkDir"
    ERROR = "error"
    READY = "ready"


@dataclass
class ChangeEvent:
    """A single event reported by a watch session."""

    kind: ChangeKind
    session: SessionName
    path: Path | None = None
    error: BaseException | None = None
    timestamp: float = field(default_factory=time.time)


Subscriber = Callable[[ChangeEvent], Any]


class EventEmitter(LoggerMixin):
    """
    Broadcasts change events to external subscribers.

    Subscribers register per kind; a failing subscriber is logged and
    does not prevent delivery to the others.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._subscribers: dict[ChangeKind, list[Subscriber]] = defaultdict(list)

    def on(self, kind: ChangeKind | str, callback: Subscriber) -> Subscriber:
        """
        Subscribe to an event kind.

        Returns:
            The callback, for later removal with off()
        """
        self._subscribers[ChangeKind(kind)].append(callback)
        return callback

    def off(self, kind: ChangeKind | str, callback: Subscriber) -> None:
        """Remove a subscription if present."""
        callbacks = self._subscribers.get(ChangeKind(kind), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber of its kind."""
        for callback in list(self._subscribers.get(event.kind, [])):
            try:
                callback(event)
            except Exception as e:
                self.log.warning(
                    "subscriber_failed",
                    emitter=self._name,
                    kind=event.kind.value,
                    error=str(e),
                )

    def subscriber_count(self, kind: ChangeKind | str | None = None) -> int:
        """Count subscribers of one kind, or of all kinds."""
        if kind is None:
            return sum(len(callbacks) for callbacks in self._subscribers.values())
        return len(self._subscribers.get(ChangeKind(kind), []))
