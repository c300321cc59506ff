"""Tests for resilience module."""


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from faultsim.resilience import (
        DelayConfig,
        DelayInjector,
        FaultConfig,
        FaultInjector,
        RetryExecutor,
        RetryPolicy,
        with_deadline,
    )

    assert FaultInjector is not None
    assert RetryExecutor is not None
    assert DelayInjector is not None
    assert with_deadline is not None
