from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

from .logging_config import logger


class BackgroundTaskRegistry:
    """
    Holds detached tasks (stream pumps, usage consumers) outside any request
    scope.

    The event loop only keeps weak references to tasks, so the registry keeps
    strong ones until each task finishes. `drain()` is awaited at shutdown so
    in-flight billing is not cut off when the server stops.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed: %s", task.get_name(), exc, exc_info=exc
            )

    def _tasks_on(self, loop: asyncio.AbstractEventLoop) -> set[asyncio.Task[Any]]:
        return {task for task in self._tasks if task.get_loop() is loop}

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks, cancelling whatever is left after `timeout`."""
        # Tasks may spawn further tasks (a pump feeding a consumer), so loop.
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while own := self._tasks_on(loop):
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.wait(own, timeout=remaining)

        leftovers = list(self._tasks_on(loop))
        if leftovers:
            logger.warning(
                "Cancelling %d background task(s) still running after %.1fs",
                len(leftovers),
                timeout or 0.0,
            )
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)


background_tasks = BackgroundTaskRegistry()


__all__ = ["BackgroundTaskRegistry", "background_tasks"]
