"""Async token bucket rate limiter.

One bucket guards each platform. Waiting for a token suspends only the
calling task, never the worker pool.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from core.errors import TransientFetchError


class TokenBucket:
    """Continuously refilled token bucket.

    Attributes:
        platform: Platform name the bucket guards.
        capacity: Maximum stored tokens (burst size).
        refill_per_second: Tokens added per second.
    """

    def __init__(
        self,
        platform: str,
        capacity: int,
        refill_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if capacity < 1 or refill_per_second <= 0:
            raise ValueError("Token bucket capacity and refill rate must be positive.")
        self.platform = platform
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated_at = clock()

    async def acquire(self, timeout_seconds: float) -> None:
        """Take one token, waiting cooperatively until one is available.

        The token is reserved before waiting, so concurrent callers queue
        behind each other's reservations and each one's wait is measured
        from its own call. A reserved token is not returned if the caller
        is cancelled while waiting.

        Args:
            timeout_seconds: Maximum time to wait for a token.

        Raises:
            TransientFetchError: If no token becomes available in time.
        """
        self._refill()
        wait_seconds = max(1 - self._tokens, 0.0) / self.refill_per_second
        if wait_seconds > timeout_seconds:
            raise TransientFetchError(
                self.platform,
                f"Rate limit token for {self.platform} not available within "
                f"{timeout_seconds:.1f}s. Lower concurrency or raise refill_per_second.",
            )
        self._tokens -= 1
        if wait_seconds > 0:
            await self._sleep(wait_seconds)

    def available_tokens(self) -> float:
        """Return the current unreserved token count after refill."""
        self._refill()
        return max(self._tokens, 0.0)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(now - self._updated_at, 0.0)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._updated_at = now
