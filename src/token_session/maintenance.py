"""Caller-owned background maintenance tasks."""

import asyncio
import logging
from typing import Coroutine, Set

logger = logging.getLogger("token_session.maintenance")


class MaintenanceTasks:
    """Tracks best-effort background work such as index sweeps.

    Failures are logged and swallowed. The owner decides whether tasks run at
    all and can wait for them with :meth:`drain` or stop them with
    :meth:`close`.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, name: str, coro: Coroutine) -> None:
        if not self.enabled:
            coro.close()
            return
        task = asyncio.get_running_loop().create_task(self._run(name, coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, name: str, coro: Coroutine) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Background task %s failed: %s", name, exc)


__all__ = ["MaintenanceTasks"]
