"""Resilience layer for faultsim.

This module provides:
- Synthetic storage fault injection
- Retry with exponential backoff
- Single-shot delay and gateway-timeout injection
- Caller deadlines
"""

from .delay import DelayConfig, DelayInjector
from .faults import FaultConfig, FaultDecision, FaultInjector, FaultKind
from .retry import RetryExecutor, RetryOutcome, RetryPolicy, calculate_backoff
from .timeout import with_deadline

__all__ = [
    "FaultConfig",
    "FaultDecision",
    "FaultInjector",
    "FaultKind",
    "RetryExecutor",
    "RetryOutcome",
    "RetryPolicy",
    "calculate_backoff",
    "DelayConfig",
    "DelayInjector",
    "with_deadline",
]
