"""Tests for retry with backoff."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, call

from faultsim.errors import (
    CartDataError,
    StatusCode,
    StorageConnectionError,
    StorageTimeoutError,
    StorageUnavailableError,
)
from faultsim.monitoring import (
    retry_backoff_seconds,
    storage_attempts_total,
    storage_unavailable_total,
)
from faultsim.resilience.faults import FaultConfig, FaultDecision, FaultInjector, FaultKind
from faultsim.resilience.retry import (
    RetryExecutor,
    RetryOutcome,
    RetryPolicy,
    calculate_backoff,
    should_retry,
)


class TestCalculateBackoff:
    """Test backoff calculation."""

    def test_exponential_backoff(self):
        """Delay doubles with each attempt."""
        assert calculate_backoff(1, 100) == 100
        assert calculate_backoff(2, 100) == 200
        assert calculate_backoff(3, 100) == 400
        assert calculate_backoff(4, 100) == 800

    def test_zero_base_delay(self):
        """A zero base never waits."""
        assert calculate_backoff(5, 0) == 0

    def test_attempt_must_be_positive(self):
        """Attempt numbers start at 1."""
        with pytest.raises(ValueError):
            calculate_backoff(0, 100)


class TestShouldRetry:
    """Test retry decision logic."""

    def test_storage_errors_retried(self):
        assert should_retry(StorageTimeoutError()) is True
        assert should_retry(StorageConnectionError()) is True

    def test_unknown_errors_retried(self):
        assert should_retry(RuntimeError("boom")) is True
        assert should_retry(OSError("socket")) is True

    def test_corrupt_data_not_retried(self):
        assert should_retry(CartDataError("bad bytes")) is False

    def test_builtin_errors_retried(self):
        """Only corrupt data is exempt, not its ValueError base."""
        assert should_retry(ValueError()) is True
        assert should_retry(TypeError()) is True
        assert should_retry(KeyError("user")) is True
        assert should_retry(AttributeError()) is True


class TestRetryPolicy:
    """Test RetryPolicy."""

    def test_from_config(self):
        policy = RetryPolicy.from_config(FaultConfig(max_retries=7, base_delay_ms=25))
        assert policy == RetryPolicy(max_retries=7, base_delay_ms=25)

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)


class TestRetryOutcome:
    """Test RetryOutcome error building."""

    def test_to_error_carries_details(self):
        outcome = RetryOutcome("GetCart", attempts=4, last_error=StorageTimeoutError("slow"))
        error = outcome.to_error()
        assert error.operation_name == "GetCart"
        assert error.attempts == 4
        assert error.last_error == "slow"
        assert "after 4 attempts" in str(error)
        assert error.status == StatusCode.UNAVAILABLE
        assert error.retryable is True


class TestRetryExecutor:
    """Test RetryExecutor.execute."""

    @pytest.mark.asyncio
    async def test_success_no_retry(self, sleep):
        """Successful call runs once and never waits."""
        work = AsyncMock(return_value="cart")
        executor = RetryExecutor(policy=RetryPolicy(max_retries=3), sleep=sleep)

        result = await executor.execute(work, "GetCart")

        assert result == "cart"
        assert work.await_count == 1
        sleep.assert_not_awaited()
        assert storage_attempts_total.get(operation="GetCart", outcome="success") == 1

    @pytest.mark.asyncio
    async def test_sync_work_supported(self, sleep):
        """Plain callables are accepted."""
        executor = RetryExecutor(sleep=sleep)
        assert await executor.execute(lambda: 42, "Sync") == 42

    @pytest.mark.asyncio
    async def test_retry_on_failure(self, sleep):
        """Transient failures are retried until success."""
        work = AsyncMock(side_effect=[StorageTimeoutError("t1"), StorageConnectionError("c1"), "ok"])
        executor = RetryExecutor(policy=RetryPolicy(max_retries=3, base_delay_ms=100), sleep=sleep)

        result = await executor.execute(work, "AddItem")

        assert result == "ok"
        assert work.await_count == 3
        assert sleep.await_args_list == [call(0.1), call(0.2)]

    @pytest.mark.parametrize("max_retries", [0, 1, 2, 3, 5])
    @pytest.mark.asyncio
    async def test_exhaustion_makes_n_plus_one_attempts(self, sleep, max_retries):
        """An always-failing operation runs exactly N+1 times."""
        work = AsyncMock(side_effect=StorageConnectionError("reset"))
        executor = RetryExecutor(sleep=sleep)

        with pytest.raises(StorageUnavailableError) as exc_info:
            await executor.execute(work, "EmptyCart", max_retries=max_retries, base_delay_ms=10)

        assert work.await_count == max_retries + 1
        assert exc_info.value.attempts == max_retries + 1
        assert exc_info.value.last_error == "reset"
        assert isinstance(exc_info.value.__cause__, StorageConnectionError)
        assert storage_unavailable_total.get(operation="EmptyCart") == 1

    @pytest.mark.parametrize(
        "error",
        [KeyError("u1"), ValueError("bad"), TypeError("bad"), AttributeError("bad")],
    )
    @pytest.mark.asyncio
    async def test_builtin_errors_exhaust_retries(self, sleep, error):
        """Builtin errors from the work are retried like storage faults."""
        work = AsyncMock(side_effect=error)
        executor = RetryExecutor(policy=RetryPolicy(max_retries=3, base_delay_ms=10), sleep=sleep)

        with pytest.raises(StorageUnavailableError) as exc_info:
            await executor.execute(work, "GetCart")

        assert work.await_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.__cause__ is error
        assert sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_backoff_schedule(self, sleep):
        """Wait before retry k is base * 2^(k-1)."""
        work = AsyncMock(side_effect=StorageTimeoutError("timeout"))
        executor = RetryExecutor(sleep=sleep)

        with pytest.raises(StorageUnavailableError):
            await executor.execute(work, "GetCart", max_retries=4, base_delay_ms=50)

        waits = [c.args[0] for c in sleep.await_args_list]
        assert waits == [0.05, 0.1, 0.2, 0.4]
        assert retry_backoff_seconds.get_all()[("GetCart",)] == [0.05, 0.1, 0.2, 0.4]

    @pytest.mark.asyncio
    async def test_policy_defaults_used(self, sleep):
        """Without overrides the executor's policy applies."""
        work = AsyncMock(side_effect=StorageTimeoutError("timeout"))
        executor = RetryExecutor(policy=RetryPolicy(max_retries=2, base_delay_ms=30), sleep=sleep)

        with pytest.raises(StorageUnavailableError) as exc_info:
            await executor.execute(work, "GetCart")

        assert exc_info.value.attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.03, 0.06]

    @pytest.mark.asyncio
    async def test_corrupt_data_fails_immediately(self, sleep):
        """CartDataError propagates without retry."""
        work = AsyncMock(side_effect=CartDataError("garbage", key="u1"))
        executor = RetryExecutor(policy=RetryPolicy(max_retries=3), sleep=sleep)

        with pytest.raises(CartDataError):
            await executor.execute(work, "GetCart")

        assert work.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_negative_override(self, sleep):
        executor = RetryExecutor(sleep=sleep)
        with pytest.raises(ValueError):
            await executor.execute(AsyncMock(), "GetCart", max_retries=-1)

    @pytest.mark.asyncio
    async def test_retry_logs_attempts(self, sleep, caplog):
        """Each failed attempt and the final failure are logged."""
        work = AsyncMock(side_effect=StorageTimeoutError("timeout"))
        executor = RetryExecutor(sleep=sleep)

        with caplog.at_level("WARNING", logger="faultsim.resilience.retry"):
            with pytest.raises(StorageUnavailableError):
                await executor.execute(work, "AddItem", max_retries=2, base_delay_ms=100)

        messages = [r.getMessage() for r in caplog.records]
        assert any("AddItem failed (attempt 1), retrying in 100ms" in m for m in messages)
        assert any("AddItem failed (attempt 2), retrying in 200ms" in m for m in messages)
        assert any("AddItem failed after 3 attempts" in m for m in messages)


class TestRetryExecutorInjection:
    """Test fault injection inside the executor."""

    @pytest.mark.asyncio
    async def test_hard_fault_skips_real_work_then_recovers(self, sleep):
        """A synthetic fault replaces attempt 0; the retry runs the real work."""
        injector = Mock(spec=FaultInjector)
        injector.should_inject_fault.return_value = FaultDecision(FaultKind.TIMEOUT)
        work = AsyncMock(return_value="ok")
        executor = RetryExecutor(injector, RetryPolicy(max_retries=3, base_delay_ms=100), sleep=sleep)

        result = await executor.execute(work, "GetCart")

        assert result == "ok"
        assert work.await_count == 1
        injector.should_inject_fault.assert_called_once_with("GetCart")
        sleep.assert_awaited_once_with(0.1)

    @pytest.mark.asyncio
    async def test_injection_only_on_first_attempt(self, sleep):
        """Retries never consult the injector."""
        injector = Mock(spec=FaultInjector)
        injector.should_inject_fault.return_value = FaultDecision(FaultKind.POOL_EXHAUSTED)
        work = AsyncMock(side_effect=[StorageTimeoutError("real"), "ok"])
        executor = RetryExecutor(injector, RetryPolicy(max_retries=3, base_delay_ms=10), sleep=sleep)

        assert await executor.execute(work, "AddItem") == "ok"
        assert injector.should_inject_fault.call_count == 1
        assert work.await_count == 2

    @pytest.mark.asyncio
    async def test_slow_operation_waits_then_runs(self, sleep):
        """A slow decision delays attempt 0 and still succeeds."""
        injector = Mock(spec=FaultInjector)
        injector.should_inject_fault.return_value = FaultDecision(FaultKind.SLOW_OPERATION, 1500)
        work = AsyncMock(return_value="ok")
        executor = RetryExecutor(injector, sleep=sleep)

        assert await executor.execute(work, "GetCart") == "ok"
        sleep.assert_awaited_once_with(1.5)
        assert work.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_rate_one_no_retries_fails_once(self, sleep):
        """failure_rate=1.0 with max_retries=0 fails after exactly one attempt."""
        config = FaultConfig(enabled=True, failure_rate=1.0, max_retries=0)
        executor = RetryExecutor.from_config(config, sleep=sleep)
        work = AsyncMock(return_value="never")

        with pytest.raises(StorageUnavailableError) as exc_info:
            await executor.execute(work, "GetCart")

        assert exc_info.value.attempts == 1
        work.assert_not_awaited()
        sleep.assert_not_awaited()


class TestCancellation:
    """Test cancellation during backoff."""

    @pytest.mark.asyncio
    async def test_cancel_during_backoff_stops_retrying(self):
        """Cancelling the caller abandons the wait and further attempts."""
        attempts = 0

        async def always_fails():
            nonlocal attempts
            attempts += 1
            raise StorageTimeoutError("timeout")

        executor = RetryExecutor(policy=RetryPolicy(max_retries=5, base_delay_ms=10_000))
        task = asyncio.ensure_future(executor.execute(always_fails, "GetCart"))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert attempts == 1
