"""
Retry policy, generic async retry combinator and a per-process rate limiter.

Used by geocoding and any other rate-limited enrichment call:

    policy = RetryPolicy(max_attempts=2, backoff_range=(10.0, 20.0))
    limiter = RateLimiter(min_interval=1.0)

    async def call():
        await limiter.acquire()
        return await client.get(url)

    response = await retry_async(call, policy)
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar
from core.exceptions import RetryableError
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts including the first one
        backoff_range: (min, max) seconds; the delay between attempts is
            drawn uniformly from this range
    """
    max_attempts: int = 2
    backoff_range: Tuple[float, float] = (10.0, 20.0)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        low, high = self.backoff_range
        if low < 0 or high < low:
            raise ValueError(f"invalid backoff_range {self.backoff_range}")

    def next_delay(self) -> float:
        low, high = self.backoff_range
        return random.uniform(low, high)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (RetryableError,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run `operation` until it succeeds or `policy.max_attempts` is reached.

    Only exceptions matching `retry_on` are retried; anything else
    propagates immediately. An exception carrying `retry_after` seconds
    raises the delay to at least that value. After the last attempt the
    final exception is re-raised.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.warning(f"{description} failed after {attempt} attempt(s): {e}")
                raise
            delay = max(policy.next_delay(), getattr(e, "retry_after", None) or 0)
            logger.info(
                f"{description} attempt {attempt}/{policy.max_attempts} failed ({e}); "
                f"retrying in {delay:.1f}s"
            )
            await sleep(delay)

    # max_attempts >= 1 so the loop always returns or raises
    raise RuntimeError("unreachable")


class RateLimiter:
    """
    Enforces a minimum interval between calls within one process.

    Callers await `acquire()` right before each external request; calls
    are serialized so at most one starts per `min_interval` seconds.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None

    async def acquire(self):
        async with self._lock:
            if self._last_call is not None:
                wait = self.min_interval - (self._clock() - self._last_call)
                if wait > 0:
                    await self._sleep(wait)
            self._last_call = self._clock()
