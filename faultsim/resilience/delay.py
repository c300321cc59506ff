"""Artificial latency for single-shot remote calls.

Used where a call is passed straight through without retries (the payment
charge). A call may be delayed, and a delayed call may then fail with a
gateway timeout. The two probabilities are tuned independently.
"""

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..config import Settings
from ..errors import GatewayTimeoutError
from ..monitoring.metrics import gateway_timeouts_total, injected_delay_seconds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DelayConfig:
    """Immutable delay-injection configuration."""

    enabled: bool = False
    delay_probability: float = 0.3
    min_delay_ms: int = 2000
    max_delay_ms: int = 8000
    timeout_rate: float = 0.1
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self):
        if not 0.0 <= self.delay_probability <= 1.0:
            raise ValueError("delay_probability must be between 0.0 and 1.0")
        if not 0.0 <= self.timeout_rate <= 1.0:
            raise ValueError("timeout_rate must be between 0.0 and 1.0")
        if not 0 <= self.min_delay_ms <= self.max_delay_ms:
            raise ValueError("delay window must satisfy 0 <= min <= max")

    @classmethod
    def from_settings(cls, settings: Settings, seed: Optional[int] = None) -> "DelayConfig":
        if seed is None:
            seed = settings.fault_injection_seed
        return cls(
            enabled=settings.simulate_payment_delays,
            delay_probability=settings.payment_delay_frequency,
            min_delay_ms=settings.payment_min_delay_ms,
            max_delay_ms=settings.payment_max_delay_ms,
            timeout_rate=settings.payment_timeout_rate,
            rng=random.Random(seed),
        )


class DelayInjector:
    """Delays and optionally fails one call, without retrying it."""

    def __init__(
        self,
        config: Optional[DelayConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or DelayConfig()
        self._sleep = sleep

    async def maybe_delay(self, operation_name: str) -> int:
        """Possibly wait, then possibly fail.

        Args:
            operation_name: Name used in logs and metrics

        Returns:
            Milliseconds waited (0 when no delay was applied)

        Raises:
            GatewayTimeoutError: If the delayed call is chosen to time out
        """
        if not self.config.enabled:
            return 0

        rng = self.config.rng
        if rng.random() >= self.config.delay_probability:
            return 0

        delay_ms = rng.randint(self.config.min_delay_ms, self.config.max_delay_ms)
        logger.warning(f"Simulating {operation_name} processing delay: {delay_ms}ms")
        injected_delay_seconds.labels(operation=operation_name).observe(delay_ms / 1000)
        await self._sleep(delay_ms / 1000)

        if rng.random() < self.config.timeout_rate:
            logger.error(f"{operation_name} processing timeout after {delay_ms}ms")
            gateway_timeouts_total.labels(operation=operation_name).inc()
            raise GatewayTimeoutError(operation_name, delay_ms)

        logger.info(f"{operation_name} delay simulation completed after {delay_ms}ms")
        return delay_ms

    async def call(self, operation_name: str, work: Callable[[], Any]) -> Any:
        """Apply ``maybe_delay`` and then run ``work`` (sync or async)."""
        await self.maybe_delay(operation_name)
        result = work()
        if inspect.isawaitable(result):
            result = await result
        return result
