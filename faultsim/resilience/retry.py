"""Retry with exponential backoff for storage operations.

Provides a generic executor that:
- Injects a synthetic fault (or slowdown) before the first attempt only
- Retries real and synthetic failures with doubling backoff
- Raises StorageUnavailableError once the retry budget is spent
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ..errors import CartDataError, StorageUnavailableError
from ..monitoring.metrics import (
    retry_backoff_seconds,
    storage_attempts_total,
    storage_unavailable_total,
)
from .faults import FaultConfig, FaultInjector

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnitOfWork = Callable[[], Union[Awaitable[T], T]]
SleepFunc = Callable[[float], Awaitable[Any]]


# Exceptions to NOT retry (corrupt stored data cannot heal)
NON_RETRYABLE_EXCEPTIONS = (CartDataError,)


@dataclass(frozen=True)
class RetryPolicy:
    """Per-call-site retry bounds."""

    max_retries: int = 3
    base_delay_ms: int = 100

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

    @classmethod
    def from_config(cls, config: FaultConfig) -> "RetryPolicy":
        return cls(max_retries=config.max_retries, base_delay_ms=config.base_delay_ms)


@dataclass
class RetryOutcome:
    """Attempts made and the last error seen for one unit of work."""

    operation_name: str
    attempts: int = 0
    last_error: Optional[BaseException] = None

    def to_error(self) -> StorageUnavailableError:
        message = str(self.last_error) if self.last_error is not None else None
        return StorageUnavailableError(self.operation_name, self.attempts, message)


def calculate_backoff(attempt: int, base_delay_ms: int) -> int:
    """Calculate the wait before a retry.

    Args:
        attempt: Number of failed attempts so far (1-indexed)
        base_delay_ms: Delay before the first retry

    Returns:
        Delay in milliseconds (base, 2x base, 4x base, ...)
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return base_delay_ms * 2 ** (attempt - 1)


def should_retry(exception: Exception) -> bool:
    """Determine if an exception should be retried."""
    return not isinstance(exception, NON_RETRYABLE_EXCEPTIONS)


class RetryExecutor:
    """Runs units of work with fault injection and bounded retries.

    One executor can serve many call sites; each call passes its own
    operation name and, optionally, its own retry bounds.

    Usage:
        executor = RetryExecutor(FaultInjector(config), RetryPolicy.from_config(config))
        cart = await executor.execute(lambda: cache.get(user_id), "GetCart")
    """

    def __init__(
        self,
        injector: Optional[FaultInjector] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize executor.

        Args:
            injector: Fault injector consulted before each first attempt
            policy: Default retry bounds
            sleep: Awaitable sleep used for backoff and slow-operation waits
        """
        self.injector = injector or FaultInjector()
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: FaultConfig, sleep: SleepFunc = asyncio.sleep) -> "RetryExecutor":
        return cls(FaultInjector(config), RetryPolicy.from_config(config), sleep=sleep)

    async def execute(
        self,
        work: UnitOfWork,
        operation_name: str,
        max_retries: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
    ) -> Any:
        """Run ``work`` until it succeeds or the retry budget is spent.

        Args:
            work: Zero-argument callable; may return an awaitable
            operation_name: Name used in logs, metrics and the final error
            max_retries: Overrides the policy's retry count
            base_delay_ms: Overrides the policy's base backoff

        Returns:
            Result of ``work``

        Raises:
            StorageUnavailableError: If every attempt failed
            CartDataError: Stored payload is corrupt (not retried)
        """
        if max_retries is None:
            max_retries = self.policy.max_retries
        if base_delay_ms is None:
            base_delay_ms = self.policy.base_delay_ms
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        outcome = RetryOutcome(operation_name)

        while outcome.attempts <= max_retries:
            try:
                if outcome.attempts == 0:
                    await self._inject(operation_name)

                result = work()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                storage_attempts_total.labels(operation=operation_name, outcome="failure").inc()

                if not should_retry(e):
                    logger.error(f"Non-retryable error in {operation_name}: {e}")
                    raise

                outcome.last_error = e
                outcome.attempts += 1

                if outcome.attempts <= max_retries:
                    delay_ms = calculate_backoff(outcome.attempts, base_delay_ms)
                    logger.warning(
                        f"Storage operation {operation_name} failed (attempt {outcome.attempts}), "
                        f"retrying in {delay_ms}ms: {e}"
                    )
                    retry_backoff_seconds.labels(operation=operation_name).observe(delay_ms / 1000)
                    await self._sleep(delay_ms / 1000)
                continue

            storage_attempts_total.labels(operation=operation_name, outcome="success").inc()
            if outcome.attempts:
                logger.info(
                    f"Storage operation {operation_name} recovered after "
                    f"{outcome.attempts + 1} attempts"
                )
            return result

        logger.error(f"Storage operation {operation_name} failed after {outcome.attempts} attempts")
        storage_unavailable_total.labels(operation=operation_name).inc()
        raise outcome.to_error() from outcome.last_error

    async def _inject(self, operation_name: str) -> None:
        decision = self.injector.should_inject_fault(operation_name)
        if decision.is_hard_failure:
            raise decision.to_exception(operation_name)
        if decision.is_slow:
            await self._sleep(decision.delay_ms / 1000)
