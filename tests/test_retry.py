"""
Unit tests for the retry executor.

Backoff sleeps are replaced with a recorder so tests run instantly while
still checking the delay schedule.
"""

import asyncio

import pytest

from ai_content_core.core.errors import ErrorKind, ProviderError
from ai_content_core.core.retry import RetryPolicy, execute_with_retry

from conftest import StatusError


class FlakyOperation:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, errors=(), result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRetryPolicy:
    """Test retry policy validation."""

    def test_defaults(self):
        """Verify default limits."""
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.base_delay_ms == 1000

    def test_negative_values_rejected(self):
        """Verify negative limits raise."""
        with pytest.raises(ValueError, match="max_retries cannot be negative"):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError, match="base_delay_ms cannot be negative"):
            RetryPolicy(base_delay_ms=-5)


class TestExecuteWithRetry:
    """Test retry behavior of execute_with_retry."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, no_sleep):
        """Verify a successful call is not retried."""
        operation = FlakyOperation()
        result = await execute_with_retry(operation, sleep=no_sleep)
        assert result == "ok"
        assert operation.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, no_sleep):
        """Verify a transient failure is retried after the base delay plus jitter."""
        operation = FlakyOperation(errors=[StatusError(503)])
        result = await execute_with_retry(operation, base_delay_ms=1000, sleep=no_sleep, provider="openai")
        assert result == "ok"
        assert operation.calls == 2
        assert len(no_sleep.delays) == 1
        assert 1.0 <= no_sleep.delays[0] <= 2.0

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_last_error(self, no_sleep):
        """Verify the last normalized error surfaces after max_retries attempts."""
        operation = FlakyOperation(errors=[StatusError(429)] * 5)
        with pytest.raises(ProviderError) as exc_info:
            await execute_with_retry(operation, max_retries=3, base_delay_ms=1000, sleep=no_sleep)
        assert exc_info.value.kind == ErrorKind.RATE_LIMIT
        assert operation.calls == 3
        assert len(no_sleep.delays) == 2
        # exponential: base, then 2 * base, each plus up to 1s jitter
        assert 1.0 <= no_sleep.delays[0] <= 2.0
        assert 2.0 <= no_sleep.delays[1] <= 3.0

    @pytest.mark.asyncio
    async def test_terminal_error_not_retried(self, no_sleep):
        """Verify client errors fail on the first attempt."""
        operation = FlakyOperation(errors=[StatusError(400, "bad input")])
        with pytest.raises(ProviderError) as exc_info:
            await execute_with_retry(operation, sleep=no_sleep, provider="google")
        assert exc_info.value.kind == ErrorKind.BAD_REQUEST
        assert exc_info.value.provider == "google"
        assert operation.calls == 1
        assert no_sleep.delays == []

    @pytest.mark.asyncio
    async def test_zero_retries_means_one_attempt(self, no_sleep):
        """Verify max_retries=0 still makes a single attempt."""
        operation = FlakyOperation(errors=[StatusError(503)])
        with pytest.raises(ProviderError):
            await execute_with_retry(operation, max_retries=0, sleep=no_sleep)
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_custom_normalizer(self, no_sleep):
        """Verify the caller's normalizer decides retryability."""
        def normalize(exc):
            return ProviderError(f"wrapped: {exc}", kind=ErrorKind.NETWORK, provider="perplexity")

        operation = FlakyOperation(errors=[RuntimeError("flaky")])
        result = await execute_with_retry(operation, normalize_error=normalize, sleep=no_sleep)
        assert result == "ok"
        assert operation.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_before_first_attempt(self, no_sleep):
        """Verify a set cancel event aborts without calling the vendor."""
        cancel = asyncio.Event()
        cancel.set()
        operation = FlakyOperation()
        with pytest.raises(ProviderError) as exc_info:
            await execute_with_retry(operation, cancel_event=cancel, sleep=no_sleep, provider="openai")
        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert operation.calls == 0

    @pytest.mark.asyncio
    async def test_cancelled_during_backoff(self):
        """Verify cancelling during backoff stops further attempts."""
        cancel = asyncio.Event()

        async def cancelling_sleep(seconds):
            cancel.set()

        operation = FlakyOperation(errors=[StatusError(503)] * 3)
        with pytest.raises(ProviderError) as exc_info:
            await execute_with_retry(operation, cancel_event=cancel, sleep=cancelling_sleep)
        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert operation.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_wakes_default_backoff(self):
        """Verify the default backoff wait ends as soon as the event is set."""
        cancel = asyncio.Event()
        operation = FlakyOperation(errors=[StatusError(503)] * 3)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            cancel.set()

        canceller = asyncio.ensure_future(cancel_soon())
        with pytest.raises(ProviderError) as exc_info:
            await asyncio.wait_for(
                execute_with_retry(operation, base_delay_ms=60000, cancel_event=cancel),
                timeout=5,
            )
        await canceller
        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert operation.calls == 1
