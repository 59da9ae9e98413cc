"""Detached background execution for webhook processing.

The webhook route must answer Zoom within a few seconds, so the transcript
pipeline runs as an asyncio task that the request path never awaits. The
runner keeps a strong reference to each task until it finishes (the event
loop only holds weak ones), logs failures, and lets the lifespan drain
outstanding work before the process exits.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class BackgroundTaskRunner:
    """Spawns fire-and-forget tasks whose outcome is observed only via logs."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return immediately."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("background.task_spawned", task=name, pending=len(self._tasks))
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background.task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background.task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )
        else:
            logger.info("background.task_completed", task=task.get_name())

    async def drain(self, timeout: float) -> None:
        """Wait up to ``timeout`` seconds for outstanding tasks, then cancel the rest."""
        if not self._tasks:
            return
        pending = set(self._tasks)
        logger.info("background.draining", pending=len(pending), timeout=timeout)
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning("background.drain_timed_out", cancelled=len(still_pending))
