# context_rollback/utils/async_utils.py
"""
Helpers for driving the async API from synchronous callers and for
fire-and-forget background work.
"""
import asyncio
from typing import Any, Coroutine, Optional, TypeVar

from context_rollback.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


def has_running_loop() -> bool:
    """Return True if the current thread is executing inside an event loop."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def run_async(coroutine: Coroutine[Any, Any, T]) -> T:
    """
    Run an async coroutine from a synchronous context.

    Args:
        coroutine: The coroutine to run to completion

    Returns:
        The result of the coroutine

    Raises:
        RuntimeError: If called from inside a running event loop
    """
    if has_running_loop():
        coroutine.close()
        raise RuntimeError(
            "run_async called from an async context. "
            "Use 'await coroutine' directly instead."
        )

    try:
        return asyncio.run(coroutine)
    except Exception as e:
        logger.error(f"Error running async coroutine: {str(e)}")
        raise


def spawn_background(
    coroutine: Coroutine[Any, Any, Any],
    description: str
) -> Optional["asyncio.Task[Any]"]:
    """
    Start a coroutine without waiting for it.

    Inside a running loop the coroutine becomes a task whose failure is logged
    and never re-raised. Without a loop it is run to completion right away,
    again logging instead of raising.

    Args:
        coroutine: The coroutine to start
        description: Human readable name used in log messages

    Returns:
        The created task, or None if the coroutine already ran synchronously
    """
    if has_running_loop():
        task = asyncio.get_running_loop().create_task(coroutine)

        def _log_failure(done: "asyncio.Task[Any]") -> None:
            if done.cancelled():
                logger.debug(f"Background task cancelled: {description}")
                return
            error = done.exception()
            if error is not None:
                logger.error(f"Background task failed: {description}: {error}")

        task.add_done_callback(_log_failure)
        return task

    try:
        asyncio.run(coroutine)
    except Exception as e:
        logger.error(f"Background task failed: {description}: {str(e)}")
    return None
