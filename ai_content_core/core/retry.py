"""
Retry with exponential backoff and jitter.

Shared by every adapter for transient vendor failures. Built on tenacity;
only the classification and normalization of errors live here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .errors import ErrorKind, ProviderError, is_retryable_error, normalize_error as default_normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
JITTER_MAX_SECONDS = 1.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry limits for one adapter."""
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS

    def __post_init__(self):
        """Validate limits."""
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms cannot be negative")


def backoff_wait(base_delay_ms: int):
    """Wait strategy: base * 2^(attempt-1) plus up to one second of jitter."""
    return wait_exponential(multiplier=base_delay_ms / 1000, exp_base=2, min=0) + wait_random(0, JITTER_MAX_SECONDS)


def _cancelled(provider: Optional[str]) -> ProviderError:
    return ProviderError("Request cancelled", kind=ErrorKind.CANCELLED, provider=provider, retryable=False)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Attempt %d failed, retrying in %.0fms: %s",
        retry_state.attempt_number,
        delay * 1000,
        error,
    )


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    normalize_error: Optional[Callable[[BaseException], ProviderError]] = None,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    provider: Optional[str] = None,
) -> T:
    """Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine function performing the vendor call
        max_retries: Total attempts; 0 is treated as a single attempt
        base_delay_ms: Delay before the first retry, doubled on each retry
        normalize_error: Maps a raw exception to a ProviderError
        cancel_event: When set, aborts before the next attempt or during backoff
        sleep: Awaitable sleep used between attempts
        provider: Provider name recorded on normalized errors

    Returns:
        Result of the first successful attempt

    Raises:
        ProviderError: Last normalized failure, a terminal failure or cancellation
    """
    normalize = normalize_error or (lambda exc: default_normalize(exc, provider))
    base_sleep = sleep or asyncio.sleep

    async def _sleep(seconds: float) -> None:
        if cancel_event is None:
            await base_sleep(seconds)
            return
        if cancel_event.is_set():
            raise _cancelled(provider)
        if sleep is not None:
            await sleep(seconds)
        else:
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                return
        if cancel_event.is_set():
            raise _cancelled(provider)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_retries)),
        wait=backoff_wait(base_delay_ms),
        retry=retry_if_exception(is_retryable_error),
        sleep=_sleep,
        before_sleep=_log_retry,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            if cancel_event is not None and cancel_event.is_set():
                raise _cancelled(provider)
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                raise normalize(exc) from exc
