"""
AssetWatch Delayed Tasks.

A cancellable, single-shot delayed call owned by the component that
schedules it.
Requires Python 3.11+.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from utils.logger import LoggerMixin


class DelayedTask(LoggerMixin):
    """
    Runs a coroutine function once after a delay.

    At most one run is waiting at a time. Once the delay elapses the run
    no longer counts as pending, so a new one can be scheduled while the
    callback is still executing. Cancellation only affects a run that has
    not fired yet. Exceptions raised by the callback are logged, never
    propagated to the event loop.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._waiting: asyncio.Task[None] | None = None
        self._running: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> bool:
        """True while a scheduled run has not fired yet."""
        return self._waiting is not None and not self._waiting.done()

    def schedule(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> bool:
        """
        Schedule the callback unless a run is already pending.

        Returns:
            True if a new run was scheduled
        """
        if self.pending:
            return False
        task = asyncio.create_task(self._run(delay, callback), name=self._name)
        self._waiting = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return True

    def cancel(self) -> None:
        """Cancel the pending run, if any."""
        if self.pending:
            self._waiting.cancel()
        self._waiting = None

    async def wait(self) -> None:
        """Wait for every scheduled or executing run to finish."""
        while self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    async def _run(self, delay: float, callback: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(delay)
        if self._waiting is asyncio.current_task():
            self._waiting = None
        try:
            await callback()
        except Exception as e:
            self.log.error("delayed_task_failed", task=self._name, error=str(e))
