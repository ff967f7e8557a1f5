"""Request pacing primitives: minimum-interval throttle, exponential backoff, retry combinator.

These know nothing about what they pace. The scrapers own one RateLimiter and
one ExponentialBackoff each; the sync pipeline wraps its download in
retry_with_backoff.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from alko_catalog.core.logging import logger
from alko_catalog.core.exceptions import BotChallengeDetected, CrawlerException

T = TypeVar("T")


class RateLimiter:
    """Blocks callers until min_interval_s has passed since the previous call."""

    def __init__(
        self,
        min_interval_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.min_interval_s = float(min_interval_s)
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    async def throttle(self) -> None:
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            remaining = self.min_interval_s - elapsed
            if remaining > 0:
                logger.debug(f"[Throttle] waiting {remaining * 1000:.0f}ms")
                await self._sleep(remaining)
        self._last_call = self._clock()

    async def throttle_with_jitter(self, max_jitter_s: float = 1.0) -> None:
        """throttle() plus a random extra delay in [0, max_jitter_s)"""
        await self.throttle()
        jitter = random.random() * max(0.0, max_jitter_s)
        if jitter > 0:
            await self._sleep(jitter)
        self._last_call = self._clock()


class ExponentialBackoff:
    """Delay = min(base * factor ** attempt, max); attempt grows per call, reset() zeros it."""

    def __init__(
        self,
        base_s: float = 2.0,
        max_s: float = 60.0,
        factor: float = 2.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.base_s = base_s
        self.max_s = max_s
        self.factor = factor
        self._sleep = sleep
        self._attempt = 0

    @property
    def attempts(self) -> int:
        return self._attempt

    def next_delay(self) -> float:
        delay = min(self.base_s * (self.factor ** self._attempt), self.max_s)
        self._attempt += 1
        return delay

    def reset(self) -> None:
        self._attempt = 0

    async def wait(self) -> float:
        delay = self.next_delay()
        logger.info(f"[Backoff] attempt {self._attempt}: sleeping {delay:.1f}s")
        await self._sleep(delay)
        return delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    backoff: ExponentialBackoff,
    *,
    retries: int = 2,
    retry_on: Tuple[Type[BaseException], ...] = (CrawlerException, asyncio.TimeoutError, OSError),
    give_up_on: Tuple[Type[BaseException], ...] = (BotChallengeDetected,),
    label: str = "operation",
) -> T:
    """Run operation, retrying retryable errors up to `retries` extra times.

    Each failure consumes one backoff step before the next attempt. Errors in
    give_up_on (bot challenges) and errors outside retry_on propagate at once.
    """
    attempt = 0
    while True:
        try:
            result = await operation()
        except give_up_on:
            raise
        except retry_on as e:
            if attempt >= retries:
                logger.error(f"[Retry] {label} failed after {attempt + 1} attempts: {e}")
                raise
            attempt += 1
            logger.warning(f"[Retry] {label} failed ({type(e).__name__}: {e}); retry {attempt}/{retries}")
            await backoff.wait()
            continue
        backoff.reset()
        return result
