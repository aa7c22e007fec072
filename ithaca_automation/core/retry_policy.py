"""
Retry Policy

This module provides the retry building blocks shared by HTTP calls, chain
RPC calls and the coarser per-operation retry loops:
- Exponential backoff with multiplicative jitter and a hard cap
- Classification of status codes and exceptions as retryable or definitive
- A retry driver built on tenacity that reports exhaustion as a result
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

import aiohttp
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
)

from ..utils.metrics import RETRY_SLEEPS

logger = structlog.get_logger(__name__)

T = TypeVar('T')

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
MAX_BACKOFF_SECONDS = 300.0

NETWORK_ERRORS = (
    aiohttp.ClientConnectionError,
    aiohttp.ClientPayloadError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


@dataclass
class RetryPolicy:
    """Backoff and classification rules for one retry loop

    Attributes:
        base_wait: Delay before the first retry, in seconds
        cap: Upper bound of the un-jittered delay
        jitter: Apply a random factor in [0.5, 1.5) to every delay
    """
    base_wait: float = 10.0
    cap: float = MAX_BACKOFF_SECONDS
    jitter: bool = True
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed"""
        wait = min(self.cap, self.base_wait * (2 ** attempt))
        if not self.jitter:
            return wait
        return wait * (0.5 + self.rng.random())

    @staticmethod
    def is_retryable_status(status: int) -> bool:
        return status in RETRYABLE_STATUS_CODES

    def is_retryable_error(self, error: BaseException) -> bool:
        """Network-level failures are retryable, anything else is definitive"""
        if isinstance(error, aiohttp.ClientResponseError):
            return self.is_retryable_status(error.status)
        if isinstance(error, NETWORK_ERRORS):
            return True
        # Provider wrappers re-raise transport failures under their own names
        error_type = type(error).__name__
        return "Timeout" in error_type or "Connection" in error_type

    def is_retryable(self, outcome: Any) -> bool:
        """Classify either a status code or an exception"""
        if isinstance(outcome, BaseException):
            return self.is_retryable_error(outcome)
        return self.is_retryable_status(int(outcome))


@dataclass
class RetryState:
    """Mutable state of one logical retried operation"""
    attempts: int = 0
    last_status: Optional[int] = None
    last_error: Optional[str] = None
    proxy: Optional[str] = None


@dataclass
class RetryOutcome(Generic[T]):
    """Result of :func:`run_with_retry`

    ``value`` is only set on success; ``last_value`` keeps the final result
    returned by the operation even when retries were exhausted.
    """
    success: bool
    state: RetryState
    value: Optional[T] = None
    last_value: Optional[T] = None


_EXHAUSTED = object()


async def run_with_retry(
    operation: Callable[[RetryState], Awaitable[T]],
    policy: RetryPolicy,
    max_attempts: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retry_on_result: Optional[Callable[[T], bool]] = None,
    label: str = "operation",
    state: Optional[RetryState] = None,
) -> RetryOutcome[T]:
    """Run ``operation`` until it succeeds or ``max_attempts`` is reached

    Args:
        operation: Coroutine function receiving the shared RetryState
        policy: Backoff and error classification
        max_attempts: Total number of attempts, including the first one
        sleep: Awaitable sleep used between attempts
        retry_on_result: Predicate marking a returned value as retryable
        label: Operation name used in logs and metrics
        state: State to update; a fresh one is created if None

    Returns:
        RetryOutcome; exhaustion yields ``success=False`` instead of raising.

    Raises:
        Any exception the policy classifies as non-retryable.
    """
    state = state if state is not None else RetryState()
    result_predicate = retry_on_result or (lambda _: False)
    last_value: List[Optional[T]] = [None]

    async def _attempt() -> T:
        state.attempts += 1
        last_value[0] = None
        try:
            value = await operation(state)
        except Exception as e:
            state.last_error = f"{type(e).__name__}: {e}"
            raise
        last_value[0] = value
        return value

    def _wait(retry_state: RetryCallState) -> float:
        return policy.delay(retry_state.attempt_number - 1)

    def _before_sleep(retry_state: RetryCallState) -> None:
        RETRY_SLEEPS.labels(operation=label).inc()
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Attempt failed, retrying",
            operation=label,
            attempt=f"{retry_state.attempt_number}/{max_attempts}",
            status=state.last_status,
            error=state.last_error,
            retry_in=f"{wait:.1f}s",
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=_wait,
        retry=retry_if_exception(policy.is_retryable_error) | retry_if_result(result_predicate),
        sleep=sleep,
        before_sleep=_before_sleep,
        retry_error_callback=lambda retry_state: _EXHAUSTED,
        reraise=False,
    )

    result = await retrying(_attempt)
    if result is _EXHAUSTED:
        logger.error(
            "Retries exhausted",
            operation=label,
            attempts=state.attempts,
            status=state.last_status,
            error=state.last_error,
        )
        return RetryOutcome(success=False, state=state, last_value=last_value[0])
    return RetryOutcome(success=True, state=state, value=result, last_value=result)
