"""Background task runner - detached work that must not block a reply."""

import asyncio
import contextlib
from collections.abc import Coroutine
from typing import Any

from memoria.core.logging import get_logger

logger = get_logger("core.background")


class BackgroundTaskRunner:
    """Spawns detached asyncio tasks and keeps them alive until done.

    The event loop only holds weak references to tasks, so spawned work is
    tracked here until it finishes. Exceptions are logged, never re-raised.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule a coroutine without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Spawned background task: {name}")
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} cancelled")
            return

        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error}")
            return

        logger.debug(f"Background task {task.get_name()} finished: {task.result()}")

    async def drain(self) -> None:
        """Wait for all in-flight tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel all in-flight tasks."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
