"""Unit tests for the bounded retry policy."""

from __future__ import annotations

import pytest

from core.cancellation import CancellationToken
from core.errors import PermanentFetchError, TransientFetchError
from platforms.retry_policy import RetryPolicy


class Recorder:
    """Operation that fails a fixed number of times before succeeding."""

    def __init__(self, failures: list[Exception]) -> None:
        self._failures = list(failures)
        self.calls = 0
        self.sleeps: list[float] = []

    async def __call__(self) -> str:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return "ok"

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.mark.asyncio
async def test_transient_failures_retry_with_exponential_backoff() -> None:
    """Transient errors retry with doubling delays until success."""
    recorder = Recorder([TransientFetchError("codeforces", "HTTP 503")] * 2)
    policy = RetryPolicy(3, 2.0, 30.0, sleep=recorder.sleep)

    result = await policy.run("codeforces", recorder)

    assert result == "ok" and recorder.calls == 3 and recorder.sleeps == [2.0, 4.0]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried() -> None:
    """Permanent errors surface after exactly one attempt."""
    recorder = Recorder([PermanentFetchError("leetcode", "User not found.")])
    policy = RetryPolicy(3, 2.0, 30.0, sleep=recorder.sleep)

    with pytest.raises(PermanentFetchError):
        await policy.run("leetcode", recorder)

    assert recorder.calls == 1 and recorder.sleeps == []


@pytest.mark.asyncio
async def test_transient_failure_after_last_attempt_is_raised() -> None:
    """Exhausted attempts re-raise the last transient error."""
    recorder = Recorder([TransientFetchError("atcoder", "timed out")] * 5)
    policy = RetryPolicy(2, 3.0, 30.0, sleep=recorder.sleep)

    with pytest.raises(TransientFetchError, match="timed out"):
        await policy.run("atcoder", recorder)

    assert recorder.calls == 2 and recorder.sleeps == [3.0]


@pytest.mark.asyncio
async def test_cancelled_token_stops_retrying() -> None:
    """A cancelled batch does not schedule further attempts."""
    token = CancellationToken()
    token.cancel()
    recorder = Recorder([TransientFetchError("github", "HTTP 502")])
    policy = RetryPolicy(3, 1.0, 30.0, sleep=recorder.sleep)

    with pytest.raises(TransientFetchError):
        await policy.run("github", recorder, token)

    assert recorder.calls == 1


def test_backoff_is_capped() -> None:
    """Backoff doubles per attempt but never exceeds the cap."""
    policy = RetryPolicy(10, 2.0, 10.0)

    assert [policy.backoff_for(attempt) for attempt in range(1, 5)] == [2.0, 4.0, 8.0, 10.0]
