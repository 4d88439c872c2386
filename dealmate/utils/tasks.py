"""Detached background tasks whose failures are logged, never raised."""

import asyncio
from typing import Any, Coroutine, Optional, Set

from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight
_BACKGROUND_TASKS: Set[asyncio.Task] = set()


def _log_task_result(task: asyncio.Task) -> None:
    _BACKGROUND_TASKS.discard(task)
    if task.cancelled():
        LOGGER.debug(f"Background task {task.get_name()} cancelled")
        return
    error = task.exception()
    if error is not None:
        LOGGER.error(
            f"Background task {task.get_name()} failed: {error}",
            exc_info=(type(error), error, error.__traceback__),
        )


def spawn_logged(coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
    """Schedule ``coro`` without awaiting it.

    Must be called from a running event loop. The returned task may be
    awaited by tests; production callers drop it.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        raise

    task = loop.create_task(coro, name=name)
    _BACKGROUND_TASKS.add(task)
    task.add_done_callback(_log_task_result)
    return task


async def drain_background_tasks() -> None:
    """Wait for every pending detached task (used at shutdown and in tests)."""
    while _BACKGROUND_TASKS:
        await asyncio.gather(*list(_BACKGROUND_TASKS), return_exceptions=True)
