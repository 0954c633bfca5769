"""
Unit tests for the retry combinator and rate limiter
"""

import pytest
from unittest.mock import AsyncMock

from core.exceptions import GeocodingError, NetworkError, RateLimitError
from core.retry import RateLimiter, RetryPolicy, retry_async


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failure():
    operation = AsyncMock(side_effect=[NetworkError("timeout"), "ok"])
    sleep = AsyncMock()

    result = await retry_async(operation, RetryPolicy(max_attempts=2, backoff_range=(10.0, 20.0)), sleep=sleep)

    assert result == "ok"
    assert operation.await_count == 2
    delay = sleep.await_args.args[0]
    assert 10.0 <= delay <= 20.0


@pytest.mark.asyncio
async def test_retry_reraises_after_last_attempt():
    operation = AsyncMock(side_effect=NetworkError("down"))
    sleep = AsyncMock()

    with pytest.raises(NetworkError):
        await retry_async(operation, RetryPolicy(max_attempts=3, backoff_range=(0.0, 0.0)), sleep=sleep)

    assert operation.await_count == 3
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately():
    operation = AsyncMock(side_effect=GeocodingError("bad request"))
    sleep = AsyncMock()

    with pytest.raises(GeocodingError):
        await retry_async(operation, RetryPolicy(max_attempts=3), sleep=sleep)

    assert operation.await_count == 1
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_after_raises_the_backoff():
    operation = AsyncMock(side_effect=[RateLimitError("slow down", retry_after=45), "ok"])
    sleep = AsyncMock()

    result = await retry_async(operation, RetryPolicy(max_attempts=2, backoff_range=(10.0, 20.0)), sleep=sleep)

    assert result == "ok"
    sleep.assert_awaited_once_with(45)


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(backoff_range=(5.0, 1.0))


@pytest.mark.asyncio
async def test_rate_limiter_spaces_calls():
    clock = FakeClock()
    limiter = RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    await limiter.acquire()
    clock.now += 5.0
    await limiter.acquire()

    # Only the back-to-back call had to wait
    assert clock.sleeps == [1.0]
