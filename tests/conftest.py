"""Pytest configuration and fixtures for faultsim tests."""

import random

import pytest
from unittest.mock import AsyncMock, Mock

from faultsim.cart import CartStore, InMemoryCache
from faultsim.monitoring import reset_metrics
from faultsim.resilience import FaultConfig, RetryExecutor


FAULT_ENV_VARS = (
    "SIMULATE_CONNECTION_ISSUES",
    "CONNECTION_FAILURE_RATE",
    "MAX_CONNECTION_RETRIES",
    "BASE_RETRY_DELAY_MS",
    "SLOW_OPERATION_RATE",
    "FAULT_INJECTION_SEED",
    "SIMULATE_PAYMENT_DELAYS",
    "PAYMENT_DELAY_FREQUENCY",
    "PAYMENT_MIN_DELAY_MS",
    "PAYMENT_MAX_DELAY_MS",
    "PAYMENT_TIMEOUT_RATE",
    "REDIS_URL",
    "CART_OPERATION_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def use_test_environment(monkeypatch, tmp_path):
    """Ensure every test starts from default settings and empty metrics."""
    for name in FAULT_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def sleep():
    """Awaitable sleep stand-in that records requested waits."""
    return AsyncMock(return_value=None)


@pytest.fixture
def scripted_rng():
    """Build a Mock rng that returns the given random() values in order."""

    def _make(*values, choice=None, randrange=1500, randint=2500):
        rng = Mock(spec=random.Random)
        rng.random.side_effect = list(values)
        rng.choice.side_effect = choice or (lambda seq: seq[0])
        rng.randrange.return_value = randrange
        rng.randint.return_value = randint
        return rng

    return _make


@pytest.fixture
def cache():
    """Empty in-memory cache."""
    return InMemoryCache()


@pytest.fixture
def healthy_store(cache, sleep):
    """Cart store with fault injection disabled."""
    executor = RetryExecutor.from_config(FaultConfig(enabled=False), sleep=sleep)
    return CartStore(cache, executor)
