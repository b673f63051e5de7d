import asyncio

import pytest

from stepwise.errors import (
    FatalModelError,
    ModelCallExhaustedError,
    ModelCallFailedError,
    ModelCallTimeoutError,
    RetryableModelError,
)
from stepwise.models import ErrorKind
from stepwise.retry import RetryPolicy, call_with_retry, is_retryable_error


class Recorder:
    def __init__(self):
        self.attempts = []
        self.delays = []

    def on_attempt(self, attempt, response, error):
        self.attempts.append((attempt, response, error))

    async def sleep(self, delay):
        self.delays.append(delay)


def flaky(failures, error_factory=lambda: RetryableModelError("429"), result="ok"):
    state = {"calls": 0}

    async def operation():
        state["calls"] += 1
        if state["calls"] <= failures:
            raise error_factory()
        return result

    return operation, state


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


def test_compute_delay_is_exponential_and_capped():
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.0)
    assert [policy.compute_delay(k) for k in range(4)] == [1.0, 2.0, 4.0, 5.0]


def test_compute_delay_jitter_is_bounded():
    policy = RetryPolicy(base_delay=1.0, max_delay=100.0, jitter=0.5)
    assert policy.compute_delay(1, rng=lambda: 0.0) == 2.0
    assert policy.compute_delay(1, rng=lambda: 1.0) == 2.5


def test_policy_rejects_cap_below_base():
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=2.0, max_delay=1.0)


def test_classification():
    assert is_retryable_error(RetryableModelError("rate limited")) is True
    assert is_retryable_error(ConnectionResetError()) is True
    assert is_retryable_error(FatalModelError("bad key")) is False
    assert is_retryable_error(ValueError("nope")) is False


# ---------------------------------------------------------------------------
# call_with_retry
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_two_retryable_failures_then_success():
    recorder = Recorder()
    operation, state = flaky(2)
    policy = RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=10.0, jitter=0.1)

    result = await call_with_retry(
        operation, policy=policy, on_attempt=recorder.on_attempt, sleep=recorder.sleep
    )

    assert result == "ok"
    assert state["calls"] == 3
    assert [a[0] for a in recorder.attempts] == [1, 2, 3]
    assert recorder.attempts[-1][1] == "ok"
    assert len(recorder.delays) == 2
    assert 0.5 <= recorder.delays[0] <= 0.6
    assert 1.0 <= recorder.delays[1] <= 1.1


@pytest.mark.asyncio
async def test_exhausted_retries_raise_with_last_error():
    recorder = Recorder()
    operation, state = flaky(10)
    policy = RetryPolicy(max_attempts=4, jitter=0.0)

    with pytest.raises(ModelCallExhaustedError) as excinfo:
        await call_with_retry(operation, policy=policy, on_attempt=recorder.on_attempt, sleep=recorder.sleep)

    assert state["calls"] == 4
    assert len(recorder.attempts) == 4
    assert len(recorder.delays) == 3
    assert excinfo.value.attempts == 4
    assert excinfo.value.kind is ErrorKind.MODEL_CALL_EXHAUSTED
    assert isinstance(excinfo.value.last_error, RetryableModelError)


@pytest.mark.asyncio
async def test_fatal_error_is_not_retried():
    recorder = Recorder()
    operation, state = flaky(10, error_factory=lambda: FatalModelError("invalid api key"))

    with pytest.raises(ModelCallFailedError) as excinfo:
        await call_with_retry(operation, on_attempt=recorder.on_attempt, sleep=recorder.sleep)

    assert state["calls"] == 1
    assert len(recorder.attempts) == 1
    assert recorder.delays == []
    assert excinfo.value.kind is ErrorKind.MODEL_CALL_FAILED


@pytest.mark.asyncio
async def test_deadline_is_fatal():
    recorder = Recorder()
    calls = {"n": 0}

    async def stalled():
        calls["n"] += 1
        await asyncio.sleep(10)

    policy = RetryPolicy(max_attempts=3, timeout=0.01)

    with pytest.raises(ModelCallTimeoutError):
        await call_with_retry(stalled, policy=policy, on_attempt=recorder.on_attempt, sleep=recorder.sleep)

    assert calls["n"] == 1
    assert len(recorder.attempts) == 1
    assert recorder.delays == []
