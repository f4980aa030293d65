"""
AssetWatch Live-Reload Coordinator.

Coalesces destination changes into batched notifications and owns the
notification server lifecycle.
Requires Python 3.11+.
"""

import json
from collections.abc import Callable, Iterable
from pathlib import Path

import httpx

from reloader.server import LiveReloadServer
from utils.errors import PushError
from utils.logger import LoggerMixin
from utils.paths import file_extension, relative_to_root, trim_path
from utils.scheduling import DelayedTask

DEFAULT_FLUSH_DELAY_MS = 300


class LiveReloadCoordinator(LoggerMixin):
    """
    Batches destination changes and pushes them to the LiveReload server.

    The first eligible change starts a flush timer; later changes only
    join the batch, so notifications go out at most once per flush delay
    no matter how many files change. A failed push is logged, the batch
    is already cleared, and the next change starts a fresh cycle.
    """

    def __init__(
        self,
        dest_root: Path,
        file_types: Iterable[str],
        host: str = "127.0.0.1",
        port: int = 35729,
        flush_delay_ms: int = DEFAULT_FLUSH_DELAY_MS,
        push_timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
        server_factory: Callable[[str, int], LiveReloadServer] | None = None,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            dest_root: Root of the destination tree
            file_types: Extensions that trigger a reload
            host: Notification server host
            port: Notification server port
            flush_delay_ms: Quiet window before a batch is pushed
            push_timeout: HTTP timeout for pushes in seconds
            client: HTTP client to push with, created on first use if omitted
            server_factory: Builds the notification server for (host, port)
        """
        self._dest_root = dest_root
        self._file_types = {ext.lower() for ext in file_types}
        self._host = host
        self._port = port
        self._flush_delay = flush_delay_ms / 1000.0
        self._push_timeout = push_timeout
        self._server_factory = server_factory or (lambda h, p: LiveReloadServer(h, p))

        self._client = client
        self._owns_client = client is None
        self._server: LiveReloadServer | None = None

        # Ordered set of relative paths waiting for the next flush
        self._batch: dict[str, None] = {}
        self._timer = DelayedTask("livereload-flush")

    @property
    def endpoint(self) -> str:
        """URL pushes are posted to."""
        return f"http://{self._host}:{self._port}/changed"

    @property
    def pending_files(self) -> list[str]:
        """Relative paths waiting for the next flush."""
        return list(self._batch)

    @property
    def flush_pending(self) -> bool:
        """True while a flush timer is outstanding."""
        return self._timer.pending

    @property
    def server(self) -> LiveReloadServer | None:
        """The running notification server, if any."""
        return self._server

    def is_eligible(self, path: str | Path) -> bool:
        """Check if a destination file type triggers a reload."""
        return file_extension(path) in self._file_types

    def add_change(self, path: str | Path) -> bool:
        """
        Queue a destination change for the next flush.

        Args:
            path: Changed destination file

        Returns:
            True if the file type is eligible and was queued
        """
        if not self.is_eligible(path):
            return False

        self._batch[relative_to_root(path, self._dest_root)] = None
        self.log.debug("livereload_queued", file=trim_path(path, self._dest_root))

        # An outstanding timer flushes whatever has accumulated when it fires
        self._timer.schedule(self._flush_delay, self._flush_from_timer)
        return True

    def reset(self) -> None:
        """Drop queued changes and any outstanding flush timer."""
        self._timer.cancel()
        self._batch.clear()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._push_timeout)
        return self._client

    async def flush(self) -> list[str]:
        """
        Push the accumulated batch to the notification endpoint now.

        Returns:
            The relative paths that were pushed

        Raises:
            PushError: If the notification could not be delivered
        """
        files = list(self._batch)
        self._batch.clear()
        if not files:
            return []

        payload = json.dumps({"files": files})
        try:
            response = await self._get_client().post(
                self.endpoint,
                content=payload,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.log.error("livereload_push_failed", endpoint=self.endpoint, files=len(files), error=str(e))
            raise PushError(f"Unable to notify {self.endpoint}: {e}") from e

        self.log.info("livereload_refreshed", software="LiveReload", files=len(files))
        return files

    async def _flush_from_timer(self) -> None:
        try:
            await self.flush()
        except PushError:
            # Already logged; the next change retries naturally
            pass

    async def start_server(self) -> LiveReloadServer:
        """
        Stop any running notification server, then bind a fresh one.

        Raises:
            NotificationServerError: If the port cannot be bound
        """
        await self.stop_server()

        server = self._server_factory(self._host, self._port)
        await server.listen()
        self._server = server
        # Port 0 binds an ephemeral port; push to whatever was bound
        self._port = server.port
        return server

    async def stop_server(self) -> None:
        """Stop the notification server; no-op if none is running."""
        server, self._server = self._server, None
        if server is not None:
            await server.close()

    async def wait_idle(self) -> None:
        """Wait for scheduled and in-flight flushes to finish."""
        await self._timer.wait()

    async def aclose(self) -> None:
        """Cancel pending work, stop the server and release the HTTP client."""
        self.reset()
        await self.stop_server()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
