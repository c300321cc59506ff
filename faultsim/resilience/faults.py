"""Synthetic storage fault injection.

Decides, per unit of work, whether the first attempt should fail with a
synthetic storage fault, run slowly, or run normally. Each hard fault kind maps
to the same exception class a real backend failure of that category raises.
"""

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..config import Settings
from ..errors import (
    PoolExhaustedError,
    StorageConnectionError,
    StorageTimeoutError,
    TransientStorageError,
)
from ..monitoring.metrics import faults_injected_total

logger = logging.getLogger(__name__)


class FaultKind(str, Enum):
    """Kinds of injected fault."""

    NONE = "NONE"
    TIMEOUT = "TIMEOUT"  # Storage call timed out
    CONNECTION_RESET = "CONNECTION_RESET"  # Socket dropped
    POOL_EXHAUSTED = "POOL_EXHAUSTED"  # No free pooled connection
    SLOW_OPERATION = "SLOW_OPERATION"  # Degraded but succeeding


HARD_FAULTS = (FaultKind.TIMEOUT, FaultKind.CONNECTION_RESET, FaultKind.POOL_EXHAUSTED)


@dataclass(frozen=True)
class FaultDecision:
    """Outcome of a fault-injection draw."""

    kind: FaultKind = FaultKind.NONE
    delay_ms: int = 0

    @property
    def is_hard_failure(self) -> bool:
        return self.kind in HARD_FAULTS

    @property
    def is_slow(self) -> bool:
        return self.kind == FaultKind.SLOW_OPERATION

    def to_exception(self, operation_name: str) -> TransientStorageError:
        """Build the synthetic exception for a hard-failure decision."""
        if self.kind == FaultKind.TIMEOUT:
            return StorageTimeoutError(f"Redis connection timeout during {operation_name}")
        if self.kind == FaultKind.CONNECTION_RESET:
            return StorageConnectionError(f"Redis connection reset during {operation_name}")
        if self.kind == FaultKind.POOL_EXHAUSTED:
            return PoolExhaustedError(f"Redis connection pool exhausted during {operation_name}")
        raise ValueError(f"{self.kind.value} is not a hard failure")


NO_FAULT = FaultDecision()


@dataclass(frozen=True)
class FaultConfig:
    """Immutable fault-injection configuration.

    ``rng`` is the only randomness source used by the injector and the
    executor built from this config; seed it for deterministic runs.
    """

    enabled: bool = False
    failure_rate: float = 0.3
    max_retries: int = 3
    base_delay_ms: int = 100
    slow_operation_rate: float = 0.1
    slow_delay_min_ms: int = 1000
    slow_delay_max_ms: int = 3000
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self):
        if not 0.0 <= self.failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0.0 and 1.0")
        if not 0.0 <= self.slow_operation_rate <= 1.0:
            raise ValueError("slow_operation_rate must be between 0.0 and 1.0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        if not 0 <= self.slow_delay_min_ms < self.slow_delay_max_ms:
            raise ValueError("slow delay window must satisfy 0 <= min < max")

    @classmethod
    def from_settings(cls, settings: Settings, seed: Optional[int] = None) -> "FaultConfig":
        """Build a config from process settings.

        Args:
            settings: Loaded settings
            seed: Overrides ``settings.fault_injection_seed`` when given

        Returns:
            FaultConfig
        """
        if seed is None:
            seed = settings.fault_injection_seed
        return cls(
            enabled=settings.simulate_connection_issues,
            failure_rate=settings.connection_failure_rate,
            max_retries=settings.max_connection_retries,
            base_delay_ms=settings.base_retry_delay_ms,
            slow_operation_rate=settings.slow_operation_rate,
            rng=random.Random(seed),
        )


class FaultInjector:
    """Draws per-call fault decisions from a FaultConfig.

    Usage:
        injector = FaultInjector(FaultConfig(enabled=True, failure_rate=0.3))
        decision = injector.should_inject_fault("GetCart")
        if decision.is_hard_failure:
            raise decision.to_exception("GetCart")
    """

    def __init__(self, config: Optional[FaultConfig] = None):
        self.config = config or FaultConfig()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def should_inject_fault(self, operation_name: str) -> FaultDecision:
        """Decide whether this attempt should fail, slow down, or run normally.

        Args:
            operation_name: Name used in logs and metrics

        Returns:
            FaultDecision (NO_FAULT when injection is disabled)
        """
        if not self.config.enabled:
            return NO_FAULT

        rng = self.config.rng
        if rng.random() < self.config.failure_rate:
            kind = rng.choice(HARD_FAULTS)
            logger.warning(f"Injecting {kind.value} fault into {operation_name}")
            faults_injected_total.labels(operation=operation_name, kind=kind.value).inc()
            return FaultDecision(kind=kind)

        if rng.random() < self.config.slow_operation_rate:
            delay_ms = rng.randrange(self.config.slow_delay_min_ms, self.config.slow_delay_max_ms)
            logger.warning(f"Simulating slow storage operation for {operation_name}: {delay_ms}ms")
            faults_injected_total.labels(
                operation=operation_name, kind=FaultKind.SLOW_OPERATION.value
            ).inc()
            return FaultDecision(kind=FaultKind.SLOW_OPERATION, delay_ms=delay_ms)

        return NO_FAULT
