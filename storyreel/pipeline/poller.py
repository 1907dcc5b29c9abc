"""
Long-running operation poller.

Polls a pending generation job at a fixed interval until it completes,
fails, times out, or the caller says the result is no longer wanted.
"""
import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .enums import FailureKind, GenerationStatus
from .models import Artifact, Failure, OperationHandle
from .retry import classify_exception

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    artifact: Optional[Artifact] = None
    failure: Optional[Failure] = None
    polls: int = 0

    @property
    def ok(self) -> bool:
        return self.artifact is not None


async def await_completion(
    generator,
    operation: OperationHandle,
    poll_interval: float,
    timeout: float,
    should_continue: Optional[Callable[[], bool]] = None,
    jitter: float = 0.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollResult:
    """
    Wait for a long-running operation.

    Args:
        generator: MediaGenerator that issued the operation (provides poll())
        operation: Handle returned by generate()
        poll_interval: Seconds between polls
        timeout: Total seconds to wait before giving up
        should_continue: Checked before every poll; False abandons the wait
        jitter: Fraction of poll_interval added or removed at random

    Returns:
        PollResult with the artifact, or a failure. A timeout is retryable;
        an abandoned wait is a permanent 'cancelled' failure. The remote
        job is never cancelled.
    """
    deadline = clock() + timeout
    polls = 0

    while True:
        if should_continue is not None and not should_continue():
            logger.info(f"[POLL] {operation.operation_id} abandoned after {polls} polls")
            return PollResult(
                failure=Failure(
                    kind=FailureKind.CANCELLED,
                    message="Result no longer wanted",
                    provider=operation.provider,
                ),
                polls=polls,
            )

        polls += 1
        try:
            result = await generator.poll(operation)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failure = classify_exception(e)
            if failure.provider is None:
                failure.provider = operation.provider
            if failure.kind == FailureKind.PERMANENT:
                return PollResult(failure=failure, polls=polls)
            logger.warning(f"[POLL] {operation.operation_id} poll {polls} failed, will retry: {failure.message}")
        else:
            if result.status == GenerationStatus.COMPLETED:
                logger.info(f"[POLL] {operation.operation_id} completed after {polls} polls")
                return PollResult(artifact=result.artifact, polls=polls)
            if result.status == GenerationStatus.FAILED:
                return PollResult(failure=result.failure, polls=polls)
            logger.debug(f"[POLL] {operation.operation_id} still running (poll {polls})")

        remaining = deadline - clock()
        if remaining <= 0:
            logger.warning(f"[POLL] {operation.operation_id} timed out after {timeout:.0f}s ({polls} polls)")
            return PollResult(
                failure=Failure(
                    kind=FailureKind.TIMEOUT,
                    message=f"Generation timed out after {timeout:.0f}s",
                    provider=operation.provider,
                ),
                polls=polls,
            )

        delay = poll_interval
        if jitter:
            delay = max(0.0, poll_interval * (1 + random.uniform(-jitter, jitter)))

        # last poll lands on the deadline
        await sleep(min(delay, remaining))
