"""Shared async polling loop abstraction."""

from __future__ import annotations

import asyncio
from typing import Callable, Awaitable

from om_reminders.infrastructure.logger import logger


class PollLoop:
    """Calls an async function every ``interval_s`` seconds until stopped.

    A failing iteration is logged and the loop carries on; ``wake()`` skips
    the remaining sleep so the next iteration starts right away.
    """

    def __init__(self, name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> None:
        self._name = name
        self._interval = interval_s
        self._fn = fn
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._stopped = False
        self.iterations = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop as a background task."""
        self._stopped = False
        self._task = asyncio.create_task(self._loop(), name=f"{self._name}-loop")
        logger.info(f"{self._name} loop started", interval_s=self._interval)

    def wake(self) -> None:
        self._wakeup.set()

    def stop(self) -> None:
        """Stop the polling loop. An iteration in flight is cancelled."""
        self._stopped = True
        if self._task:
            self._task.cancel()
            self._task = None
        logger.info(f"{self._name} loop stopped", iterations=self.iterations)

    async def _loop(self) -> None:
        while not self._stopped:
            try:
                await self._fn()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception(f"Error in {self._name} loop")
            self.iterations += 1
            if self._stopped:
                break
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass


def start_poll_loop(name: str, interval_s: float, fn: Callable[[], Awaitable[None]]) -> PollLoop:
    """Create and start a polling loop. Returns a handle to stop it."""
    loop = PollLoop(name, interval_s, fn)
    loop.start()
    return loop
