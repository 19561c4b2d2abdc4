"""Unit tests for platform clients and per-student fan-out."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from core.cancellation import CancellationToken
from core.config import SkorlyConfig
from core.errors import PermanentFetchError, TransientFetchError
from core.settings import PlatformSettings, SkorlySettings
from core.types import PlatformStats
from platforms.client import PlatformClient, build_client_set
from platforms.retry_policy import RetryPolicy
from tests.fakes import FAST_SETTINGS, FakeAdapter, build_fake_client_set, no_sleep


@pytest.mark.asyncio
async def test_observe_student_mixes_success_failure_and_skip() -> None:
    """Each platform yields exactly one observation; failures become error records."""
    client_set = build_fake_client_set(
        FakeAdapter("codeforces", stats={"asha_r": PlatformStats(rating=1400, problems_solved=50)}),
        FakeAdapter(
            "leetcode", errors={"asha.codes": PermanentFetchError("leetcode", "User not found.")}
        ),
        FakeAdapter("github"),
    )

    result = await client_set.observe_student(
        "CS2101", {"codeforces": "asha_r", "leetcode": "asha.codes", "github": "  "}
    )
    statuses = {item.platform: item.fetch_status for item in result.observations}

    assert (
        statuses == {"codeforces": "success", "github": "skipped", "leetcode": "failed"}
        and [error.kind for error in result.errors] == ["permanent-api"]
        and result.errors[0].platform == "leetcode"
        and result.errors[0].student_id == "CS2101"
    )


@pytest.mark.asyncio
async def test_unsupported_platform_fails_permanently() -> None:
    """Usernames for platforms without a client are recorded as permanent failures."""
    client_set = build_fake_client_set(FakeAdapter("codeforces"))

    result = await client_set.observe_student("CS2101", {"hackerrank": "asha"})
    failed = [item for item in result.observations if item.platform == "hackerrank"][0]

    assert (
        failed.fetch_status == "failed"
        and "Unsupported platform" in (failed.error_detail or "")
        and result.errors[0].kind == "permanent-api"
    )


@pytest.mark.asyncio
async def test_transient_failures_retry_before_failing() -> None:
    """Transient adapter errors are retried up to the attempt limit."""
    adapter = FakeAdapter(
        "atcoder", errors={"asha": TransientFetchError("atcoder", "HTTP 503")}
    )
    client_set = build_fake_client_set(adapter)

    result = await client_set.observe_student("CS2101", {"atcoder": "asha"})

    assert adapter.calls == ["asha"] * 3 and result.errors[0].kind == "transient-api"


@pytest.mark.asyncio
async def test_cancelled_token_stops_further_platform_calls() -> None:
    """No platform call starts after the batch is cancelled."""
    adapter = FakeAdapter("codeforces")
    client_set = build_fake_client_set(adapter)
    token = CancellationToken()
    token.cancel()

    result = await client_set.observe_student("CS2101", {"codeforces": "asha_r"}, token)

    assert adapter.calls == [] and result.observations == ()


@pytest.mark.asyncio
async def test_platform_client_acquires_token_per_attempt() -> None:
    """Every attempt, including retries, consumes one rate-limit token."""
    adapter = FakeAdapter("github", errors={"asha": TransientFetchError("github", "HTTP 502")})
    client = PlatformClient(
        adapter,
        PlatformSettings(capacity=10, refill_per_second=0.001, timeout_seconds=1.0),
        http=None,  # type: ignore[arg-type]
        retry_policy=RetryPolicy(2, 0.0, 0.0, sleep=no_sleep),
    )

    with pytest.raises(TransientFetchError):
        await client.fetch("asha")

    assert client.bucket.available_tokens() == pytest.approx(8.0, abs=0.01)


@pytest.mark.asyncio
async def test_build_client_set_covers_configured_platforms(tmp_path) -> None:
    """Default settings produce one client per supported platform."""
    settings = SkorlySettings(
        platforms={"codeforces": FAST_SETTINGS, "github": FAST_SETTINGS, "topcoder": FAST_SETTINGS}
    )
    async with httpx.AsyncClient() as http:
        client_set = build_client_set(SkorlyConfig(data_root=tmp_path), settings, http)

    status = client_set.rate_limiter_status()

    assert (
        client_set.platforms == ("codeforces", "github")
        and status["github"]["capacity"] == 1000.0
    )


@pytest.mark.asyncio
async def test_crashing_adapter_does_not_discard_other_platforms() -> None:
    """An unexpected adapter exception fails only that platform."""
    client_set = build_fake_client_set(
        FakeAdapter("codeforces", errors={"asha_r": RuntimeError("payload shape changed")}),
        FakeAdapter("github", stats={"asha": PlatformStats(rating=500, problems_solved=50)}),
    )

    result = await client_set.observe_student(
        "CS2101", {"codeforces": "asha_r", "github": "asha"}
    )
    by_platform = {item.platform: item for item in result.observations}

    assert (
        by_platform["codeforces"].fetch_status == "failed"
        and "RuntimeError" in (by_platform["codeforces"].error_detail or "")
        and by_platform["github"].fetch_status == "success"
        and by_platform["github"].rating == 500
        and [(error.kind, error.platform) for error in result.errors]
        == [("processing", "codeforces")]
    )


@pytest.mark.asyncio
async def test_second_fetch_for_same_student_and_platform_is_refused() -> None:
    """Only one fetch per (student, platform) may be in flight."""
    gate = asyncio.Event()
    adapter = FakeAdapter(
        "codeforces", stats={"asha_r": PlatformStats(rating=1400)}, gates={"asha_r": gate}
    )
    client_set = build_fake_client_set(adapter)

    first = asyncio.create_task(client_set.observe_student("CS2101", {"codeforces": "asha_r"}))
    while not adapter.calls:
        await asyncio.sleep(0)
    duplicate = await client_set.observe_student("CS2101", {"codeforces": "asha_r"})
    other_student = asyncio.create_task(
        client_set.observe_student("CS2102", {"codeforces": "asha_r"})
    )
    gate.set()
    original = await first
    await other_student

    assert (
        duplicate.observations[0].fetch_status == "failed"
        and "already running" in duplicate.errors[0].message
        and duplicate.errors[0].kind == "permanent-api"
        and original.observations[0].fetch_status == "success"
        and adapter.calls == ["asha_r", "asha_r"]
    )
