"""
Retry policy with exponential or linear backoff.

Wraps a single generation attempt, retries transient failures and turns
everything else into a typed Failure. Nothing but cancellation escapes.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple

import httpx

from ..providers.exceptions import ProviderError
from .enums import FailureKind
from .models import Failure

logger = logging.getLogger(__name__)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 5.0  # seconds
    max_delay: float = 60.0
    backoff: str = "exponential"  # or "linear"
    jitter: bool = False
    jitter_range: Tuple[float, float] = (0.5, 1.5)

    @classmethod
    def from_pipeline_config(cls, pipeline_config) -> "RetryPolicy":
        return cls(
            max_attempts=pipeline_config.max_attempts,
            base_delay=pipeline_config.retry_base_delay,
            max_delay=pipeline_config.retry_max_delay,
            backoff=pipeline_config.retry_backoff,
        )


@dataclass
class RetryResult:
    """Value of the last successful attempt, or the last failure."""
    value: Any = None
    failure: Optional[Failure] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


def calculate_delay(attempt: int, policy: RetryPolicy, retry_after: Optional[float] = None) -> float:
    """
    Delay before the attempt following `attempt` (1-indexed).

    Exponential: base * 2^(attempt-1). Linear: base * attempt.
    Capped at max_delay, never shorter than retry_after.
    """
    if policy.backoff == "linear":
        delay = policy.base_delay * attempt
    else:
        delay = policy.base_delay * (2 ** (attempt - 1))

    delay = min(delay, policy.max_delay)

    if policy.jitter:
        delay *= random.uniform(*policy.jitter_range)

    if retry_after is not None:
        delay = max(delay, retry_after)

    return delay


def classify_exception(exc: BaseException) -> Failure:
    """Turn an exception raised by an attempt into a Failure."""
    if isinstance(exc, ProviderError):
        kind = FailureKind.TRANSIENT if exc.transient else FailureKind.PERMANENT
        return Failure(kind=kind, message=exc.message, provider=exc.provider, retry_after=exc.retry_after)

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return Failure(kind=FailureKind.TIMEOUT, message=f"Timed out: {exc}")

    if isinstance(exc, httpx.TransportError):
        return Failure(kind=FailureKind.TRANSIENT, message=f"Network error: {exc}")

    # Unknown errors are retried; max_attempts bounds the cost.
    return Failure(kind=FailureKind.TRANSIENT, message=f"{type(exc).__name__}: {exc}")


async def with_retry(
    operation: Callable[[int], Awaitable[Any]],
    policy: RetryPolicy,
    label: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryResult:
    """
    Run `operation(attempt)` until it succeeds or the policy gives up.

    The operation may return a value, return a Failure, or raise. Only
    transient and timeout failures are retried.

    Args:
        operation: Async callable receiving the 1-indexed attempt number
        policy: Retry configuration
        label: Prefix for log lines
        sleep: Awaitable sleep (injectable for tests)

    Returns:
        RetryResult with either value or failure, and the attempt count
    """
    failure: Optional[Failure] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            outcome = await operation(attempt)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = classify_exception(e)
        else:
            if not isinstance(outcome, Failure):
                if attempt > 1:
                    logger.info(f"[RETRY] {label} succeeded on attempt {attempt}")
                return RetryResult(value=outcome, attempts=attempt)
            failure = outcome

        if not failure.retryable:
            logger.warning(f"[RETRY] {label} failed permanently on attempt {attempt}: {failure}")
            return RetryResult(failure=failure, attempts=attempt)

        if attempt >= policy.max_attempts:
            break

        delay = calculate_delay(attempt, policy, failure.retry_after)
        logger.warning(
            f"[RETRY] {label} attempt {attempt}/{policy.max_attempts} failed: {failure}. "
            f"Retrying in {delay:.1f}s"
        )
        await sleep(delay)

    logger.error(f"[RETRY] {label} gave up after {policy.max_attempts} attempts: {failure}")
    return RetryResult(
        failure=Failure(
            kind=failure.kind,
            message=f"Failed after {policy.max_attempts} attempts. Last error: {failure.message}",
            provider=failure.provider,
            retry_after=failure.retry_after,
        ),
        attempts=policy.max_attempts,
    )
