"""
Tests for the long-running operation poller.
"""
import asyncio

import pytest

from storyreel.pipeline.enums import FailureKind, MediaKind
from storyreel.pipeline.models import Artifact, Failure, GenerationResult, OperationHandle
from storyreel.pipeline.poller import await_completion
from storyreel.providers.exceptions import PermanentProviderError, TransientProviderError


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class SequenceGenerator:
    """Returns (or raises) the given poll outcomes in order, then stays pending."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.polls = 0

    async def poll(self, operation):
        self.polls += 1
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        return GenerationResult.pending(operation)


OPERATION = OperationHandle(operation_id="op-1", provider="veo", kind=MediaKind.VIDEO)
VIDEO = Artifact(kind=MediaKind.VIDEO, data=b"mp4", content_type="video/mp4")


@pytest.mark.asyncio
async def test_completes_after_pending_polls():
    clock = FakeClock()
    generator = SequenceGenerator([
        GenerationResult.pending(OPERATION),
        GenerationResult.pending(OPERATION),
        GenerationResult.completed(VIDEO),
    ])

    result = await await_completion(generator, OPERATION, poll_interval=10, timeout=600, sleep=clock.sleep, clock=clock)

    assert result.ok
    assert result.artifact.data == b"mp4"
    assert result.polls == 3
    assert clock.sleeps == [10, 10]


@pytest.mark.asyncio
async def test_times_out_with_retryable_failure():
    clock = FakeClock()
    generator = SequenceGenerator([])

    result = await await_completion(generator, OPERATION, poll_interval=10, timeout=35, sleep=clock.sleep, clock=clock)

    assert not result.ok
    assert result.failure.kind == FailureKind.TIMEOUT
    assert result.failure.retryable
    assert "timed out after 35s" in result.failure.message
    assert clock.now == 35
    assert clock.sleeps == [10, 10, 10, 5]
    assert generator.polls == 5


@pytest.mark.asyncio
async def test_remote_failure_is_returned():
    clock = FakeClock()
    failure = Failure(kind=FailureKind.PERMANENT, message="Content filtered", provider="veo")
    generator = SequenceGenerator([GenerationResult.pending(OPERATION), GenerationResult.failed(failure)])

    result = await await_completion(generator, OPERATION, poll_interval=5, timeout=60, sleep=clock.sleep, clock=clock)

    assert result.failure is failure
    assert result.polls == 2


@pytest.mark.asyncio
async def test_transient_poll_errors_are_tolerated():
    clock = FakeClock()
    generator = SequenceGenerator([
        TransientProviderError("veo", "HTTP 503"),
        GenerationResult.completed(VIDEO),
    ])

    result = await await_completion(generator, OPERATION, poll_interval=5, timeout=60, sleep=clock.sleep, clock=clock)

    assert result.ok
    assert result.polls == 2


@pytest.mark.asyncio
async def test_permanent_poll_error_stops_polling():
    clock = FakeClock()
    generator = SequenceGenerator([PermanentProviderError("veo", "HTTP 404: operation not found")])

    result = await await_completion(generator, OPERATION, poll_interval=5, timeout=60, sleep=clock.sleep, clock=clock)

    assert result.failure.kind == FailureKind.PERMANENT
    assert generator.polls == 1


@pytest.mark.asyncio
async def test_abandoned_when_result_no_longer_wanted():
    clock = FakeClock()
    generator = SequenceGenerator([])
    checks = iter([True, True, False])

    result = await await_completion(
        generator,
        OPERATION,
        poll_interval=5,
        timeout=600,
        should_continue=lambda: next(checks),
        sleep=clock.sleep,
        clock=clock,
    )

    assert result.failure.kind == FailureKind.CANCELLED
    assert not result.failure.retryable
    assert generator.polls == 2


@pytest.mark.asyncio
async def test_final_poll_at_deadline():
    clock = FakeClock()
    generator = SequenceGenerator([
        GenerationResult.pending(OPERATION),
        GenerationResult.pending(OPERATION),
        GenerationResult.completed(VIDEO),
    ])

    result = await await_completion(generator, OPERATION, poll_interval=10, timeout=15, sleep=clock.sleep, clock=clock)

    assert result.ok
    assert clock.sleeps == [10, 5]
    assert result.polls == 3


@pytest.mark.asyncio
async def test_unexpected_poll_error_is_treated_as_transient():
    clock = FakeClock()
    generator = SequenceGenerator([
        ValueError("Expecting value: line 1 column 1 (char 0)"),
        GenerationResult.completed(VIDEO),
    ])

    result = await await_completion(generator, OPERATION, poll_interval=5, timeout=60, sleep=clock.sleep, clock=clock)

    assert result.ok
    assert result.polls == 2


@pytest.mark.asyncio
async def test_repeated_unexpected_poll_errors_end_in_timeout():
    clock = FakeClock()
    generator = SequenceGenerator([ValueError("not json")] * 10)

    result = await await_completion(generator, OPERATION, poll_interval=5, timeout=12, sleep=clock.sleep, clock=clock)

    assert result.failure.kind == FailureKind.TIMEOUT
    assert result.failure.provider == "veo"
    assert generator.polls == 4


@pytest.mark.asyncio
async def test_cancellation_propagates_from_poll():
    clock = FakeClock()
    generator = SequenceGenerator([asyncio.CancelledError()])

    with pytest.raises(asyncio.CancelledError):
        await await_completion(generator, OPERATION, poll_interval=5, timeout=60, sleep=clock.sleep, clock=clock)
