"""Monitoring module for faultsim.

This module provides:
- Prometheus metrics for injected faults, retries and gateway timeouts
- A small HTTP server exposing them
"""

from .metrics import (
    MetricsServer,
    faults_injected_total,
    gateway_timeouts_total,
    generate_metrics,
    injected_delay_seconds,
    reset_metrics,
    retry_backoff_seconds,
    storage_attempts_total,
    storage_unavailable_total,
)

__all__ = [
    "faults_injected_total",
    "injected_delay_seconds",
    "storage_attempts_total",
    "retry_backoff_seconds",
    "storage_unavailable_total",
    "gateway_timeouts_total",
    "generate_metrics",
    "reset_metrics",
    "MetricsServer",
]
