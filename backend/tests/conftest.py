"""
AssetWatch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import asyncio
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from utils.config import LiveReloadSettings, PathSettings, Settings, WatchSettings
from utils.errors import NotificationServerError
from watcher.session import WatchSession


class FakeObserver:
    """Stands in for a watchdog Observer; tests fire events by hand."""

    def __init__(self, fail_on_start: OSError | None = None) -> None:
        self.scheduled: list[tuple[Any, str, bool]] = []
        self.started = False
        self.stopped = False
        self.joined = False
        self.join_thread: int | None = None
        self._fail_on_start = fail_on_start

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        if self._fail_on_start is not None:
            raise self._fail_on_start
        self.started = True

    def unschedule_all(self) -> None:
        self.scheduled.clear()

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined = True
        self.join_thread = threading.get_ident()

    @property
    def active(self) -> bool:
        return self.started and not self.stopped

    def fire(self, event: Any) -> None:
        """Dispatch a watchdog event to every scheduled handler."""
        for handler, _path, _recursive in list(self.scheduled):
            handler.dispatch(event)


class FakeObserverFactory:
    """Builds FakeObservers and remembers them."""

    def __init__(self) -> None:
        self.created: list[FakeObserver] = []
        self.fail_with: OSError | None = None

    def __call__(self) -> FakeObserver:
        observer = FakeObserver(self.fail_with)
        self.created.append(observer)
        return observer

    @property
    def last(self) -> FakeObserver:
        return self.created[-1]

    @property
    def active(self) -> list[FakeObserver]:
        return [o for o in self.created if o.active]


class RecordingPipeline:
    """Build pipeline that records each submission."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[list[Path], bool]] = []
        self.error = error

    async def process_build(self, files: Sequence[Path], incremental: bool) -> None:
        self.calls.append((list(files), incremental))
        if self.error is not None:
            raise self.error


class RecordingCleaner:
    """Cleanup collaborator that records each removal."""

    def __init__(self) -> None:
        self.calls: list[tuple[Path, bool]] = []

    async def process_clean(self, dest_path: Path, incremental: bool) -> None:
        self.calls.append((dest_path, incremental))


class FakeServer:
    """Notification server stand-in for orchestrator tests."""

    def __init__(self, host: str, port: int, fail: bool = False) -> None:
        self.host = host
        self.port = port or 35729
        self.fail = fail
        self.is_listening = False
        self.closed = False

    async def listen(self) -> None:
        if self.fail:
            raise NotificationServerError(f"Unable to listen on port {self.port}")
        self.is_listening = True

    async def close(self) -> None:
        self.is_listening = False
        self.closed = True


async def settle(*sessions: WatchSession) -> None:
    """Let forwarded events run on the loop, then wait for listener work."""
    for _ in range(5):
        await asyncio.sleep(0)
    for session in sessions:
        await session.wait_idle()


@pytest.fixture
def observer_factory() -> FakeObserverFactory:
    """Factory handing out fake observers."""
    return FakeObserverFactory()


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """Create a small source tree with an empty destination next to it."""
    source = tmp_path / "source"
    (source / "css").mkdir(parents=True)
    (source / "index.html").write_text("<html></html>")
    (source / "css" / "app.scss").write_text("@import 'mixins';")
    (source / "css" / "print.scss").write_text("@import 'mixins';")
    (source / "css" / "_mixins.scss").write_text("$x: 1;")
    (source / "_header.html").write_text("<header></header>")
    (tmp_path / "dest").mkdir()
    return tmp_path


@pytest.fixture
def settings(site: Path) -> Settings:
    """Settings pointing at the sample site with startup delays disabled."""
    return Settings(
        paths=PathSettings(source=site / "source", dest=site / "dest"),
        watch=WatchSettings(ready_delay_ms=0, include_file_types=["scss", "pug"]),
        livereload=LiveReloadSettings(enabled=False, port=35729, flush_delay_ms=50),
    )
