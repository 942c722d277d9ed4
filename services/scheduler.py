# services/scheduler.py
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)

Task = Callable[[], Awaitable[object]]


class RelayScheduler:
    """Named recurring tasks on the running event loop.

    Each tick is awaited to completion before the next sleep starts, so a
    task never overlaps itself. Starting a name that is already running is a
    no-op and returns the existing handle.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def start_recurring(self, name: str, interval: float, task: Task, *, run_immediately: bool = False) -> asyncio.Task:
        existing = self._tasks.get(name)
        if existing and not existing.done():
            return existing
        log.debug("[scheduler] starting %s every %.0fs", name, interval)
        handle = asyncio.create_task(self._run(name, interval, task, run_immediately), name=name)
        self._tasks[name] = handle
        return handle

    async def _run(self, name: str, interval: float, task: Task, run_immediately: bool) -> None:
        if not run_immediately:
            await asyncio.sleep(interval)
        while True:
            try:
                await task()
            except asyncio.CancelledError:
                raise
            except Exception:
                # one bad tick must not kill the timer; next tick will retry
                log.exception("[scheduler] tick of %s failed", name)
            await asyncio.sleep(interval)

    def is_running(self, name: str) -> bool:
        handle = self._tasks.get(name)
        return bool(handle and not handle.done())

    def names(self) -> list[str]:
        return [name for name in self._tasks if self.is_running(name)]

    async def cancel(self, name: str) -> None:
        handle = self._tasks.pop(name, None)
        if handle and not handle.done():
            handle.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await handle

    async def cancel_all(self, prefix: str = "") -> None:
        for name in [n for n in self._tasks if n.startswith(prefix)]:
            await self.cancel(name)
