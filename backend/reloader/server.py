"""
AssetWatch LiveReload Server.

A LiveReload-compatible notification server: browsers connect over
WebSocket, the watcher posts changed files to /changed.
Requires Python 3.11+.
"""

import asyncio
import contextlib
import json
import socket
from typing import Any
from urllib.parse import parse_qs

import uvicorn
from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect

from utils.errors import NotificationServerError
from utils.logger import LoggerMixin, get_logger

logger = get_logger("reloader.server")

LIVERELOAD_PROTOCOL = "http://livereload.com/protocols/official-7"
SERVER_NAME = "assetwatch"


class ReloadClientManager:
    """
    Manages browser WebSocket connections.

    Handles connection lifecycle and reload broadcasting.
    """

    def __init__(self) -> None:
        """Initialize the connection manager."""
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """
        Accept a browser connection and send the protocol handshake.

        Args:
            websocket: The WebSocket connection to register
        """
        await websocket.accept()
        await websocket.send_text(json.dumps({
            "command": "hello",
            "protocols": [LIVERELOAD_PROTOCOL],
            "serverName": SERVER_NAME,
        }))
        async with self._lock:
            self._connections.add(websocket)
        logger.info("livereload_client_connected", total_connections=len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        """Unregister a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("livereload_client_disconnected", total_connections=len(self._connections))

    async def broadcast(self, message: dict[str, Any]) -> None:
        """
        Broadcast a message to all connected clients.

        Args:
            message: The message to broadcast
        """
        if not self._connections:
            return

        message_json = json.dumps(message)
        disconnected: set[WebSocket] = set()

        async with self._lock:
            for connection in self._connections:
                try:
                    await connection.send_text(message_json)
                except Exception as e:
                    logger.warning("broadcast_failed", error=str(e))
                    disconnected.add(connection)

            # Clean up disconnected clients
            self._connections -= disconnected

    async def reload(self, files: list[str]) -> None:
        """Tell every client to reload each changed file."""
        for path in files:
            await self.broadcast({
                "command": "reload",
                "path": path,
                "liveCSS": True,
                "liveImg": True,
            })

    async def close_all(self) -> None:
        """Close every client connection."""
        async with self._lock:
            connections, self._connections = self._connections, set()
        for connection in connections:
            with contextlib.suppress(Exception):
                await connection.close()

    @property
    def connection_count(self) -> int:
        """Get the number of active connections."""
        return len(self._connections)


def parse_changed_files(body: bytes) -> list[str]:
    """
    Extract the changed file list from a /changed request body.

    The body is JSON like ``{"files": ["css/app.css"]}`` even when sent as
    form data; ``files=a,b`` form encoding is accepted as well.
    """
    text = body.decode("utf-8", errors="replace").strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        values = parse_qs(text).get("files", [])
        return [f for value in values for f in value.split(",") if f]

    files = data.get("files", []) if isinstance(data, dict) else []
    if isinstance(files, str):
        files = files.split(",")
    return [str(f) for f in files if f]


def create_app(manager: ReloadClientManager, version: str = "0.1.0") -> FastAPI:
    """
    Create the notification FastAPI application.

    Args:
        manager: Connection manager shared with the server
        version: Version reported by the status endpoint

    Returns:
        Configured FastAPI instance
    """
    application = FastAPI(
        title="AssetWatch LiveReload",
        version=version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @application.get("/")
    async def status() -> dict[str, Any]:
        """Welcome document with server status."""
        return {
            "tinylr": "Welcome",
            "version": version,
            "clients": manager.connection_count,
        }

    @application.post("/changed")
    async def changed(request: Request) -> dict[str, Any]:
        """Receive a batch of changed files and reload clients."""
        files = parse_changed_files(await request.body())
        logger.debug("changed_received", files=files)
        await manager.reload(files)
        return {"clients": manager.connection_count, "files": files}

    @application.get("/changed")
    async def changed_query(files: str = Query(default="")) -> dict[str, Any]:
        """Same as POST /changed with a comma-separated query string."""
        changed_files = [f for f in files.split(",") if f]
        await manager.reload(changed_files)
        return {"clients": manager.connection_count, "files": changed_files}

    @application.websocket("/livereload")
    async def livereload_socket(websocket: WebSocket) -> None:
        """Browser endpoint speaking the LiveReload protocol."""
        await manager.connect(websocket)
        try:
            while True:
                # Clients send hello/info messages we have no use for
                await websocket.receive_text()
        except WebSocketDisconnect:
            await manager.disconnect(websocket)
        except Exception as e:
            logger.error("websocket_error", error=str(e))
            await manager.disconnect(websocket)

    return application


class LiveReloadServer(LoggerMixin):
    """
    Notification server lifecycle around uvicorn.

    The listening socket is bound before uvicorn starts so a busy port
    fails ``listen()`` directly instead of inside the background task.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 35729, version: str = "0.1.0") -> None:
        self._host = host
        self._port = port
        self.manager = ReloadClientManager()
        self.app = create_app(self.manager, version)

        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """Configured port, or the bound port once listening."""
        return self._port

    @property
    def is_listening(self) -> bool:
        """Check if the server task is running."""
        return self._task is not None and not self._task.done()

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, self._port))
        except OSError:
            sock.close()
            raise
        return sock

    async def listen(self) -> None:
        """
        Bind the port and start serving.

        Raises:
            NotificationServerError: If the port cannot be bound or serving fails
        """
        if self.is_listening:
            raise NotificationServerError(f"LiveReload already listening on port {self._port}")

        try:
            sock = self._bind()
        except OSError as e:
            raise NotificationServerError(
                f"Unable to listen on {self._host}:{self._port}: {e}"
            ) from e
        self._port = sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        server = uvicorn.Server(config)
        self._server = server
        self._task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started:
            if self._task.done():
                error = self._task.exception()
                self._server = None
                self._task = None
                sock.close()
                raise NotificationServerError(
                    f"LiveReload server failed to start on port {self._port}: {error}"
                )
            await asyncio.sleep(0.01)

        self.log.info("listening_on_port", software="LiveReload", port=self._port)

    async def close(self, timeout: float = 5.0) -> None:
        """Stop serving and free the port; no-op if not started."""
        if self._task is None or self._server is None:
            return

        task, server = self._task, self._server
        self._task = None
        self._server = None

        server.should_exit = True
        await self.manager.close_all()

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except TimeoutError:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self.log.info("livereload_stopped", port=self._port)
