# retry.py
# Exponential backoff around a zero-argument async operation (model calls).
#
# Every attempt is reported through on_attempt, successful or not, so the
# run's call ledger reflects retries and not just the final outcome.

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from openai import APIConnectionError, APIStatusError, APITimeoutError, RateLimitError
from pydantic import BaseModel, ConfigDict, Field, model_validator

from stepwise.errors import (
    FatalModelError,
    ModelCallExhaustedError,
    ModelCallFailedError,
    ModelCallTimeoutError,
    RetryableModelError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.5
DEFAULT_MAX_DELAY_SECONDS = 8.0
DEFAULT_JITTER_SECONDS = 0.25
_RETRYABLE_STATUS_CODES = {408, 409, 425, 429, 500, 502, 503, 504}

AttemptCallback = Callable[[int, object | None, BaseException | None], None]


class RetryPolicy(BaseModel):
    """Backoff settings. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, description="Total attempts, first one included.")
    base_delay: float = Field(DEFAULT_BASE_DELAY_SECONDS, ge=0.0)
    max_delay: float = Field(DEFAULT_MAX_DELAY_SECONDS, ge=0.0)
    jitter: float = Field(DEFAULT_JITTER_SECONDS, ge=0.0, description="Upper bound of the random extra delay.")
    timeout: float | None = Field(None, gt=0.0, description="Per-attempt deadline in seconds.")

    @model_validator(mode="after")
    def _cap_not_below_base(self) -> "RetryPolicy":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self

    def compute_delay(self, retry_index: int, rng: Callable[[], float] = random.random) -> float:
        """Delay after failed attempt `retry_index` (0-indexed)."""
        delay = self.base_delay * (2**retry_index)
        if self.jitter:
            delay += rng() * self.jitter
        return min(self.max_delay, delay)


def is_retryable_error(exc: BaseException) -> bool:
    if isinstance(exc, RetryableModelError):
        return True
    if isinstance(exc, FatalModelError):
        return False
    if isinstance(exc, (APIConnectionError, APITimeoutError, RateLimitError)):
        return True
    if isinstance(exc, APIStatusError):
        return exc.status_code in _RETRYABLE_STATUS_CODES
    if isinstance(exc, ConnectionError):
        return True
    return False


async def _attempt(operation: Callable[[], Awaitable[T]], timeout: float | None) -> T:
    if timeout is None:
        return await operation()
    try:
        return await asyncio.wait_for(operation(), timeout)
    except asyncio.TimeoutError as exc:
        raise ModelCallTimeoutError(
            f"Model call exceeded its {timeout:g}s deadline.", attempts=1, last_error=exc
        ) from exc


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    on_attempt: AttemptCallback | None = None,
    classify: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> T:
    """
    Run `operation` until it succeeds, fails fatally, or runs out of attempts.

    Raises ModelCallFailedError (fatal error or deadline) or
    ModelCallExhaustedError (retryable errors on every attempt).
    """
    policy = policy or RetryPolicy()
    last_error: BaseException | None = None

    for attempt in range(policy.max_attempts):
        number = attempt + 1
        try:
            result = await _attempt(operation, policy.timeout)
        except ModelCallTimeoutError as exc:
            if on_attempt:
                on_attempt(number, None, exc)
            exc.attempts = number
            raise
        except Exception as exc:
            if on_attempt:
                on_attempt(number, None, exc)
            if not classify(exc):
                raise ModelCallFailedError(
                    f"Model call failed with a non-retryable error: {exc}",
                    attempts=number,
                    last_error=exc,
                ) from exc
            last_error = exc
            if number >= policy.max_attempts:
                break
            delay = policy.compute_delay(attempt, rng)
            logger.warning(
                "Model call attempt %d/%d failed (%s); retrying in %.2fs",
                number,
                policy.max_attempts,
                exc,
                delay,
            )
            await sleep(delay)
            continue

        if on_attempt:
            on_attempt(number, result, None)
        return result

    raise ModelCallExhaustedError(
        f"Model call failed after {policy.max_attempts} attempt(s): {last_error}",
        attempts=policy.max_attempts,
        last_error=last_error,
    ) from last_error
