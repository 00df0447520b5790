import asyncio
from typing import Coroutine, Optional

from slabot.logging_config import get_logger

logger = get_logger("background")


class BackgroundTasks:
    """Best-effort detached tasks whose failures only show up in logs."""

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> set[asyncio.Task]:
        return set(self._tasks)

    def spawn(self, coro: Coroutine, *, name: Optional[str] = None, context: Optional[dict] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._on_done(done, context or {}))
        return task

    def _on_done(self, task: asyncio.Task, context: dict) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}",
                extra={"context": {**context, "error": str(exc)}},
            )

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
