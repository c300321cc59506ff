"""Caller deadlines for storage operations.

Bounds a whole operation, retries and backoff waits included. On expiry the
in-flight attempt or wait is cancelled and no further retries run.
"""

import asyncio
import logging
from typing import Any, Awaitable

from ..errors import DeadlineExceededError

logger = logging.getLogger(__name__)


async def with_deadline(
    coro: Awaitable[Any],
    timeout_seconds: float,
    operation_name: str = "operation",
) -> Any:
    """Execute a coroutine with a deadline.

    Args:
        coro: Coroutine to execute
        timeout_seconds: Deadline in seconds
        operation_name: Name used in logs and the error

    Returns:
        Coroutine result

    Raises:
        DeadlineExceededError: If the deadline is exceeded
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"Deadline of {timeout_seconds}s exceeded in {operation_name}")
        raise DeadlineExceededError(operation_name, timeout_seconds) from None
