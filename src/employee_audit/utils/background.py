"""Holder for fire-and-forget asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)

# A task nobody awaits for its result. Failures surface only through logging.
Detached = asyncio.Task[None]


class BackgroundTasks:
    """Keeps strong references to detached tasks until they finish.

    The event loop only holds weak references to tasks, so a task created
    and dropped can be garbage collected before it runs to completion.
    """

    def __init__(self, name: str = "background") -> None:
        self._name = name
        self._tasks: set[Detached] = set()

    def spawn(self, coro: Coroutine[Any, Any, None]) -> Detached:
        task: Detached = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: Detached) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Detached %s task failed: %s", self._name, exc, exc_info=exc
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every task spawned so far, including ones spawned while waiting."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            _done, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                logger.warning(
                    "%d %s task(s) still running after %.1fs", len(not_done), self._name, timeout
                )
                return
