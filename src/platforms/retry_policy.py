"""Bounded retry with exponential backoff for platform fetches."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from core.cancellation import CancellationToken
from core.errors import TransientFetchError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

ResultT = TypeVar("ResultT")


class RetryPolicy:
    """Retries transient fetch failures; permanent failures surface at once."""

    def __init__(
        self,
        max_attempts: int,
        backoff_seconds: float,
        max_backoff_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("Retry policy requires at least one attempt.")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self._sleep = sleep

    def backoff_for(self, attempt: int) -> float:
        """Return the delay after a failed attempt (1-based)."""
        return min(self.backoff_seconds * 2 ** (attempt - 1), self.max_backoff_seconds)

    async def run(
        self,
        platform: str,
        operation: Callable[[], Awaitable[ResultT]],
        cancel_token: CancellationToken | None = None,
    ) -> ResultT:
        """Run an operation, retrying on TransientFetchError.

        Args:
            platform: Platform name used in log events.
            operation: Zero-argument coroutine factory performing one attempt.
            cancel_token: Optional token; a cancelled batch stops retrying.

        Returns:
            Result of the first successful attempt.

        Raises:
            TransientFetchError: When attempts are exhausted or cancelled.
            PermanentFetchError: Immediately, without retry.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except TransientFetchError as error:
                cancelled = cancel_token is not None and cancel_token.cancelled
                if attempt >= self.max_attempts or cancelled:
                    raise
                delay = self.backoff_for(attempt)
                _LOGGER.warning(
                    "platform_fetch_retry",
                    platform=platform,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                    error=str(error),
                )
                await self._sleep(delay)
                attempt += 1
