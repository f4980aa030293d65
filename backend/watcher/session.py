"""
AssetWatch Watch Session.

Binds one logical watch (source or destination) to a resolved path set
using watchdog, and turns its notifications into typed change events.
Requires Python 3.11+.
"""

import asyncio
import errno
import inspect
import os
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import Path
from typing import Any

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from utils.errors import WatcherError
from utils.logger import LoggerMixin
from utils.paths import PathSpec, WatchTarget, resolve_path_spec, trim_path
from watcher.debouncer import DebounceGate
from watcher.events import ChangeEvent, ChangeKind, EventEmitter, SessionName

DEFAULT_READY_DELAY_MS = 700
OBSERVER_JOIN_TIMEOUT = 5.0

Listener = Callable[[ChangeEvent], Awaitable[Any] | Any]


class SessionState(str, Enum):
    """Lifecycle state of a watch session."""

    STOPPED = "stopped"
    STARTING = "starting"
    READY = "ready"
    ERRORED = "errored"


class SessionEventHandler(FileSystemEventHandler):
    """
    Forwards watchdog notifications from the observer thread to the loop.

    Each handler is tied to one generation of its session; events from a
    replaced observer are dropped by the session.
    """

    def __init__(
        self,
        session: "WatchSession",
        generation: int,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        super().__init__()
        self._session = session
        self._generation = generation
        self._loop = loop

    def _forward(self, kind: ChangeKind, path: str | bytes, is_directory: bool) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(
            self._session._deliver,
            self._generation,
            kind,
            Path(os.fsdecode(path)),
            is_directory,
        )

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        """Handle file/directory creation."""
        if event.is_directory:
            self._forward(ChangeKind.ADD_DIR, event.src_path, True)
        else:
            self._forward(ChangeKind.ADD, event.src_path, False)

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        """Handle file modification; directory mtime updates are noise."""
        if not event.is_directory:
            self._forward(ChangeKind.CHANGE, event.src_path, False)

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        """Handle file/directory deletion."""
        if event.is_directory:
            self._forward(ChangeKind.UNLINK_DIR, event.src_path, True)
        else:
            self._forward(ChangeKind.UNLINK, event.src_path, False)

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        """Handle a move as a removal followed by an addition."""
        if event.is_directory:
            self._forward(ChangeKind.UNLINK_DIR, event.src_path, True)
            self._forward(ChangeKind.ADD_DIR, event.dest_path, True)
        else:
            self._forward(ChangeKind.UNLINK, event.src_path, False)
            self._forward(ChangeKind.ADD, event.dest_path, False)


class WatchSession(LoggerMixin):
    """
    One logical watch binding with its own lifecycle and event stream.

    A session owns at most one watchdog observer at a time. Starting it
    again stops the previous observer first, so targets are replaced,
    never merged. Every event is handed to the single internal listener
    registered for its kind and re-broadcast on the public ``events``
    emitter. When a debounce gate is attached, ``change`` events pass
    through it before reaching either.

    All event handling runs on the asyncio loop that called ``start``.
    """

    def __init__(
        self,
        name: SessionName,
        root: Path,
        *,
        default_glob: str = "",
        recursive: bool = True,
        gate: DebounceGate | None = None,
        ready_delay_ms: int = DEFAULT_READY_DELAY_MS,
        interactive: bool = False,
        debug: bool = False,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        """
        Initialize the session.

        Args:
            name: Session identity
            root: Tree root path specs are resolved against
            default_glob: Filter used when start() gets no path spec
            recursive: Whether directories are observed recursively
            gate: Debounce gate applied to change events
            ready_delay_ms: Grace delay after ready for non-interactive callers
            interactive: Resolve start() immediately on ready
            debug: Log suppressed change events
            observer_factory: Builds the watchdog observer
        """
        self.name = name
        self.root = root
        self.events = EventEmitter(name.value)

        self._default_glob = default_glob
        self._recursive = recursive
        self._gate = gate
        self._ready_delay = ready_delay_ms / 1000.0
        self._interactive = interactive
        self._debug = debug
        self._observer_factory = observer_factory

        self._listeners: dict[ChangeKind, Listener] = {}
        self._observer: Any | None = None
        self._target: WatchTarget | None = None
        self._state = SessionState.STOPPED
        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def target(self) -> WatchTarget | None:
        """The resolved target of the current or last start."""
        return self._target

    @property
    def is_active(self) -> bool:
        """Check if an observer is currently bound."""
        return self._observer is not None

    def on(self, kind: ChangeKind | str, listener: Listener) -> None:
        """
        Register the internal listener for an event kind.

        There is one internal listener per kind; registering again
        replaces the previous one. External code should subscribe on
        ``events`` instead.
        """
        self._listeners[ChangeKind(kind)] = listener

    async def start(self, spec: PathSpec = None) -> None:
        """
        Bind a new observer to the resolved path spec.

        Any observer bound by a previous start is stopped first.

        Args:
            spec: Explicit list of paths, glob fragment, or None for the default

        Raises:
            WatcherError: If the observer fails before becoming ready
        """
        target = resolve_path_spec(spec, self.root, self._default_glob, self._recursive)

        await self.stop()

        self._loop = asyncio.get_running_loop()
        self._generation += 1
        self._state = SessionState.STARTING
        self._target = target

        observer = self._observer_factory()
        handler = SessionEventHandler(self, self._generation, self._loop)

        try:
            for base, recursive in target.bases:
                if not base.is_dir():
                    raise FileNotFoundError(
                        errno.ENOENT, "Watch directory does not exist", str(base)
                    )
                observer.schedule(handler, str(base), recursive=recursive)
            observer.start()
        except OSError as e:
            observer.unschedule_all()
            self._state = SessionState.ERRORED
            self._dispatch(ChangeEvent(kind=ChangeKind.ERROR, session=self.name, error=e))
            raise WatcherError(f"Unable to watch {target.description}: {e}") from e

        self._observer = observer
        self._mark_ready()

        # Some platforms report ready before every event is delivered
        if not self._interactive and self._ready_delay > 0:
            await asyncio.sleep(self._ready_delay)

    async def stop(self) -> None:
        """Close the bound observer and clear its targets; no-op if none is bound."""
        observer = self._observer
        if observer is None:
            if self._state is not SessionState.ERRORED:
                self._state = SessionState.STOPPED
            return

        self._observer = None
        self._generation += 1

        observer.unschedule_all()
        observer.stop()
        await asyncio.to_thread(observer.join, OBSERVER_JOIN_TIMEOUT)

        self._state = SessionState.STOPPED
        self.log.info("watch_stopped", session=self.name.value)

    async def wait_idle(self) -> None:
        """Wait for listener work already dispatched to finish."""
        while self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    def report_error(self, error: BaseException) -> None:
        """
        Report an error from the underlying watcher after startup.

        The session is left degraded: it stays bound so stop() still
        releases the observer, but callers learn through the ``error``
        event that some of its targets are no longer observed.
        """
        self._state = SessionState.ERRORED
        self._dispatch(ChangeEvent(kind=ChangeKind.ERROR, session=self.name, error=error))

    def _mark_ready(self) -> None:
        self._state = SessionState.READY
        # Anything seen while initializing must not suppress later changes
        if self._gate is not None:
            self._gate.reset()
        self.log.info(
            "watching_directory",
            session=self.name.value,
            directory="/" + self.root.name,
        )
        self._dispatch(ChangeEvent(kind=ChangeKind.READY, session=self.name))

    def _deliver(
        self,
        generation: int,
        kind: ChangeKind,
        path: Path,
        is_directory: bool,
    ) -> None:
        """Handle one forwarded watchdog notification on the loop."""
        if generation != self._generation or self._observer is None:
            return
        if self._target is None:
            return

        # Some backends cannot tell a removed watch root is a directory
        if kind in (ChangeKind.UNLINK, ChangeKind.UNLINK_DIR) and self._is_base(path):
            self.report_error(
                FileNotFoundError(errno.ENOENT, "Watch directory was removed", str(path))
            )
            return

        if not self._target.matches(path, is_directory):
            return

        if kind is ChangeKind.CHANGE and self._gate is not None:
            if not self._gate.should_process(path):
                if self._debug:
                    self.log.debug(
                        "file_changed_too_recently",
                        session=self.name.value,
                        file=trim_path(path, self.root),
                    )
                return

        self._dispatch(ChangeEvent(kind=kind, session=self.name, path=path))

    def _is_base(self, path: Path) -> bool:
        return any(path == base for base, _ in self._target.bases)

    def _dispatch(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.ERROR:
            self.log.error("watch_error", session=self.name.value, error=str(event.error))
        elif event.path is not None:
            self.log.info(
                "file_event",
                session=self.name.value,
                kind=event.kind.value,
                file=trim_path(event.path, self.root),
            )

        self.events.emit(event)

        listener = self._listeners.get(event.kind)
        if listener is None:
            return

        try:
            result = listener(event)
        except Exception as e:
            self._listener_failed(event, e)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(self._guard(event, result))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _guard(self, event: ChangeEvent, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except Exception as e:
            self._listener_failed(event, e)

    def _listener_failed(self, event: ChangeEvent, error: Exception) -> None:
        self.log.error(
            "listener_failed",
            session=self.name.value,
            kind=event.kind.value,
            file=trim_path(event.path, self.root) if event.path is not None else None,
            error=str(error),
        )
