"""Fake platform adapters and builders shared by pipeline tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from core.config import SkorlyConfig
from core.settings import PlatformSettings
from core.types import (
    BatchRef,
    PlatformObservation,
    PlatformStats,
    Snapshot,
    WeekInfo,
)
from platforms.client import PlatformClient, PlatformClientSet
from platforms.rate_limiter import TokenBucket
from platforms.retry_policy import RetryPolicy

FAST_SETTINGS = PlatformSettings(
    capacity=1000,
    refill_per_second=1000.0,
    timeout_seconds=5.0,
    max_attempts=3,
    backoff_seconds=0.0,
    max_backoff_seconds=0.0,
)


async def no_sleep(_: float) -> None:
    await asyncio.sleep(0)


class FakeAdapter:
    """Adapter returning canned stats or raising canned errors per username."""

    def __init__(
        self,
        name: str,
        stats: Mapping[str, PlatformStats] | None = None,
        errors: Mapping[str, Exception] | None = None,
        gates: Mapping[str, asyncio.Event] | None = None,
    ) -> None:
        self.name = name
        self._stats = dict(stats or {})
        self._errors = dict(errors or {})
        self._gates = dict(gates or {})
        self.calls: list[str] = []

    async def fetch_stats(self, http: Any, username: str, timeout_seconds: float) -> PlatformStats:
        self.calls.append(username)
        gate = self._gates.get(username)
        if gate is not None:
            await gate.wait()
        error = self._errors.get(username)
        if error is not None:
            raise error
        return self._stats.get(username, PlatformStats())


def build_fake_client_set(*adapters: FakeAdapter) -> PlatformClientSet:
    """Wrap fake adapters in real clients with instant retries."""
    clients = {
        adapter.name: PlatformClient(
            adapter,
            FAST_SETTINGS,
            http=None,  # type: ignore[arg-type]
            bucket=TokenBucket(adapter.name, 1000, 1000.0),
            retry_policy=RetryPolicy(3, 0.0, 0.0, sleep=no_sleep),
        )
        for adapter in adapters
    }
    return PlatformClientSet(clients)


def make_config(data_root: Path, **overrides: Any) -> SkorlyConfig:
    """Build a test config with no stagger and a generous task timeout."""
    values: dict[str, Any] = {
        "data_root": data_root,
        "concurrency": 2,
        "stagger_seconds": 0.0,
        "task_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return SkorlyConfig(**values)


def make_snapshot(
    student_id: str,
    batch_id: str,
    week_number: int,
    score: float,
    observations: tuple[PlatformObservation, ...] = (),
    tier: str = "low",
) -> Snapshot:
    """Build a stored snapshot without running reconciliation."""
    active = sum(1 for item in observations if item.fetch_status == "success")
    return Snapshot(
        student_id=student_id,
        batch_id=batch_id,
        week_number=week_number,
        week_label=f"Week {week_number}",
        captured_at=datetime(2026, 1, week_number, tzinfo=timezone.utc),
        observations=observations,
        aggregate_score=score,
        performance_tier=tier,  # type: ignore[arg-type]
        active_platform_count=active,
        trend="stable",
    )


def batch_ref(batch_id: str = "batch-1", week_number: int = 1) -> BatchRef:
    return BatchRef(batch_id, WeekInfo(week_number, f"Week {week_number}"))
