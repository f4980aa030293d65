"""
AssetWatch Watch Orchestrator.

Top-level sequencing of the source and destination watch sessions, the
build dispatcher and the live-reload coordinator.
Requires Python 3.11+.
"""

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
from watchdog.observers import Observer

from dispatch.collaborators import BuildPipeline, Cleaner, Enumerator, glob_enumerate
from dispatch.dispatcher import BuildDispatcher
from reloader.coordinator import LiveReloadCoordinator
from reloader.server import LiveReloadServer
from utils.config import Settings
from utils.errors import MissingSourceDirectoryError
from utils.logger import LoggerMixin
from utils.paths import PathSpec, source_to_dest, trim_path, validate_config_paths
from watcher.debouncer import DebounceGate
from watcher.events import ChangeEvent, ChangeKind, EventEmitter, SessionName
from watcher.session import WatchSession


class WatchOrchestrator(LoggerMixin):
    """
    Watches the source and destination trees for one watch run.

    Source changes are turned into incremental builds and cleanups;
    destination changes are batched into live-reload notifications.
    Every resource is owned by this instance, so several orchestrators
    can run side by side.

    Example:
        orchestrator = WatchOrchestrator(settings, CopyPipeline(src, dest), RemoveCleaner())
        await orchestrator.process_watch()
        ...
        await orchestrator.close()
    """

    def __init__(
        self,
        settings: Settings,
        pipeline: BuildPipeline,
        cleaner: Cleaner,
        *,
        enumerate_files: Enumerator = glob_enumerate,
        observer_factory: Callable[[], Any] = Observer,
        http_client: httpx.AsyncClient | None = None,
        server_factory: Callable[[str, int], LiveReloadServer] | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            settings: Application settings
            pipeline: Build pipeline collaborator
            cleaner: Cleanup collaborator
            enumerate_files: Glob enumeration used for include fan-out
            observer_factory: Builds watchdog observers for both sessions
            http_client: HTTP client used for live-reload pushes
            server_factory: Builds the notification server
        """
        self._settings = settings
        self._cleaner = cleaner
        self._source_root = settings.paths.source
        self._dest_root = settings.paths.dest

        watch = settings.watch
        self.gate = DebounceGate(window_ms=watch.debounce_ms)

        self.source = WatchSession(
            SessionName.SOURCE,
            self._source_root,
            default_glob=watch.source_glob,
            recursive=watch.recursive,
            gate=self.gate,
            ready_delay_ms=watch.ready_delay_ms,
            interactive=settings.cli,
            debug=settings.debug,
            observer_factory=observer_factory,
        )
        self.dest = WatchSession(
            SessionName.DEST,
            self._dest_root,
            default_glob=watch.dest_glob,
            recursive=watch.recursive,
            ready_delay_ms=watch.ready_delay_ms,
            interactive=settings.cli,
            debug=settings.debug,
            observer_factory=observer_factory,
        )

        self.dispatcher = BuildDispatcher(
            source_root=self._source_root,
            pipeline=pipeline,
            include_prefix=watch.include_prefix,
            include_file_types=watch.include_file_types,
            enumerate_files=enumerate_files,
        )

        livereload = settings.livereload
        self.coordinator = LiveReloadCoordinator(
            dest_root=self._dest_root,
            file_types=livereload.file_types,
            host=livereload.host,
            port=livereload.port,
            flush_delay_ms=livereload.flush_delay_ms,
            push_timeout=livereload.push_timeout,
            client=http_client,
            server_factory=server_factory
            or (lambda host, port: LiveReloadServer(host, port, settings.app_version)),
        )

        self.time_to_watch: float | None = None

        self._wire_source()
        self._wire_dest()

    @property
    def emitter_source(self) -> EventEmitter:
        """Public event surface of the source session."""
        return self.source.events

    @property
    def emitter_dest(self) -> EventEmitter:
        """Public event surface of the destination session."""
        return self.dest.events

    def _wire_source(self) -> None:
        self.source.on(ChangeKind.ADD_DIR, self._on_source_add_dir)
        self.source.on(ChangeKind.UNLINK_DIR, self._on_source_unlink)
        self.source.on(ChangeKind.ADD, self._on_source_build)
        self.source.on(ChangeKind.CHANGE, self._on_source_build)
        self.source.on(ChangeKind.UNLINK, self._on_source_unlink)

    def _wire_dest(self) -> None:
        self.dest.on(ChangeKind.ADD, self._on_dest_change)
        self.dest.on(ChangeKind.CHANGE, self._on_dest_change)
        # Events seen while the watcher was initializing must not leak
        self.dest.on(ChangeKind.READY, lambda event: self.coordinator.reset())

    def _to_dest(self, path: Path) -> Path:
        return source_to_dest(path, self._source_root, self._dest_root)

    async def _on_source_build(self, event: ChangeEvent) -> None:
        await self.dispatcher.build_one(event.path)

    async def _on_source_unlink(self, event: ChangeEvent) -> None:
        await self._cleaner.process_clean(self._to_dest(event.path), True)

    async def _on_source_add_dir(self, event: ChangeEvent) -> None:
        target = self._to_dest(event.path)
        try:
            await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            self.log.error(
                "mirror_directory_failed",
                directory=trim_path(target, self._dest_root),
                error=str(e),
            )

    def _on_dest_change(self, event: ChangeEvent) -> None:
        self.coordinator.add_change(event.path)

    async def process_watch(
        self,
        source_filter: PathSpec = None,
        dest_filter: PathSpec = None,
    ) -> None:
        """
        Start watching according to configuration.

        Args:
            source_filter: Glob fragment like '*.html' or list of source paths
            dest_filter: Glob fragment like '*.css' or list of destination paths

        Raises:
            ConfigurationError: If the configured paths are unusable
            MissingSourceDirectoryError: If the source directory does not exist
            WatcherError: If a session fails before becoming ready
            NotificationServerError: If the LiveReload server cannot bind
        """
        if not self._settings.watch.enabled:
            return

        started = time.perf_counter()

        validate_config_paths(self._source_root, self._dest_root)

        exists = await asyncio.to_thread(self._source_root.is_dir)
        if not exists:
            raise MissingSourceDirectoryError(self._source_root)

        self.log.info("watch_starting", source=str(self._source_root))

        await self.source.start(source_filter)

        if self._settings.livereload.enabled:
            # Rebind only the notification channel, never the sessions
            await self.stop(stop_livereload=True)
            await self.coordinator.start_server()

            await asyncio.to_thread(self._dest_root.mkdir, parents=True, exist_ok=True)
            await self.dest.start(dest_filter)

        self.time_to_watch = time.perf_counter() - started
        self.log.info("watch_started", seconds=round(self.time_to_watch, 3))

    async def stop(
        self,
        stop_source: bool = False,
        stop_dest: bool = False,
        stop_livereload: bool = False,
    ) -> None:
        """
        Tear down selected resources; each flag is independent and idempotent.

        Nothing is stopped unless asked for, so callers can rebind one
        watcher without disturbing the others. Builds and pushes already
        dispatched run to completion.
        """
        if stop_source:
            await self.source.stop()
        if stop_dest:
            await self.dest.stop()
        if stop_livereload:
            await self.coordinator.stop_server()

    async def wait_idle(self) -> None:
        """Wait for dispatched builds, cleanups and pushes to finish."""
        await self.source.wait_idle()
        await self.dest.wait_idle()
        await self.coordinator.wait_idle()

    async def close(self) -> None:
        """Stop everything and release the HTTP client."""
        await self.stop(stop_source=True, stop_dest=True, stop_livereload=True)
        await self.wait_idle()
        await self.coordinator.aclose()

    async def __aenter__(self) -> "WatchOrchestrator":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.close()
