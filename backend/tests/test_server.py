"""
Tests for the LiveReload notification server.

Requires Python 3.11+.
"""

import socket

import httpx
import pytest
from fastapi.testclient import TestClient

from reloader.server import LiveReloadServer, ReloadClientManager, create_app, parse_changed_files
from utils.errors import NotificationServerError


@pytest.fixture
def client():
    """Create a test client for a fresh notification app."""
    app = create_app(ReloadClientManager(), version="9.9.9")
    with TestClient(app) as test_client:
        yield test_client


class TestParseChangedFiles:
    """Test cases for /changed body parsing."""

    def test_json_body(self):
        """Test the JSON batch payload."""
        assert parse_changed_files(b'{"files": ["a.css", "js/b.js"]}') == ["a.css", "js/b.js"]

    def test_form_body(self):
        """Test form encoded comma-separated files."""
        assert parse_changed_files(b"files=a.css,b.css") == ["a.css", "b.css"]

    def test_comma_string_in_json(self):
        """Test a files string inside JSON."""
        assert parse_changed_files(b'{"files": "a.css,b.css"}') == ["a.css", "b.css"]

    def test_empty_and_odd_bodies(self):
        """Test bodies without a file list."""
        assert parse_changed_files(b"") == []
        assert parse_changed_files(b"[1, 2]") == []
        assert parse_changed_files(b"other=1") == []


class TestNotificationApp:
    """Test cases for the notification routes."""

    def test_welcome(self, client: TestClient):
        """Test the status document."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"tinylr": "Welcome", "version": "9.9.9", "clients": 0}

    def test_changed_without_clients(self, client: TestClient):
        """Test a push with nobody connected is accepted."""
        response = client.post(
            "/changed",
            content='{"files": ["css/app.css"]}',
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.status_code == 200
        assert response.json() == {"clients": 0, "files": ["css/app.css"]}

    def test_clients_receive_hello_and_reload(self, client: TestClient):
        """Test the LiveReload handshake and reload broadcast."""
        with client.websocket_connect("/livereload") as websocket:
            hello = websocket.receive_json()
            assert hello["command"] == "hello"
            assert "http://livereload.com/protocols/official-7" in hello["protocols"]

            response = client.post(
                "/changed",
                content='{"files": ["css/app.css", "index.html"]}',
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            assert response.json()["clients"] == 1

            first = websocket.receive_json()
            second = websocket.receive_json()

        assert first == {"command": "reload", "path": "css/app.css", "liveCSS": True, "liveImg": True}
        assert second["path"] == "index.html"

    def test_changed_query_string(self, client: TestClient):
        """Test GET /changed with a files query parameter."""
        with client.websocket_connect("/livereload") as websocket:
            websocket.receive_json()
            response = client.get("/changed", params={"files": "a.css,b.css"})
            assert response.json() == {"clients": 1, "files": ["a.css", "b.css"]}
            assert websocket.receive_json()["path"] == "a.css"
            assert websocket.receive_json()["path"] == "b.css"


class TestLiveReloadServer:
    """Test cases for the server lifecycle."""

    @pytest.mark.asyncio
    async def test_listen_and_close(self):
        """Test serving on an ephemeral port and freeing it again."""
        server = LiveReloadServer("127.0.0.1", 0)
        await server.listen()
        port = server.port

        try:
            assert server.is_listening
            assert port != 0
            async with httpx.AsyncClient() as http:
                response = await http.post(
                    f"http://127.0.0.1:{port}/changed",
                    content='{"files": ["a.css"]}',
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            assert response.status_code == 200
            assert response.json()["files"] == ["a.css"]
        finally:
            await server.close()

        assert not server.is_listening
        await server.close()

        again = LiveReloadServer("127.0.0.1", port)
        await again.listen()
        await again.close()

    @pytest.mark.asyncio
    async def test_busy_port_fails(self):
        """Test binding an occupied port raises a server error."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        try:
            server = LiveReloadServer("127.0.0.1", port)
            with pytest.raises(NotificationServerError):
                await server.listen()
            assert not server.is_listening
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_listen_twice_fails(self):
        """Test a running server refuses a second listen."""
        server = LiveReloadServer("127.0.0.1", 0)
        await server.listen()
        try:
            with pytest.raises(NotificationServerError):
                await server.listen()
        finally:
            await server.close()
