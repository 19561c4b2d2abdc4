"""Unit tests for batch orchestration over fake platform clients."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from core.constants import DEFAULT_HISTORY_LIMIT
from core.errors import (
    PermanentFetchError,
    SkorlyBatchError,
    SkorlyStoreError,
    SkorlyValidationError,
    TransientFetchError,
)
from core.settings import ScoringWeights
from core.types import PlatformStats, Snapshot, StudentRecord
from ingest.orchestrator import IngestOrchestrator
from ingest.student_task import TaskServices
from ingest.worker_pool import WorkerPool
from platforms.client import PlatformClientSet
from store.batch_store import BatchStore
from store.snapshot_store import SnapshotStore
from store.student_store import StudentStore
from store.week_sequencer import WeekSequencer
from tests.fakes import FakeAdapter, build_fake_client_set, make_config


class FailingSnapshotStore(SnapshotStore):
    """Snapshot store whose writes always fail."""

    def save(self, snapshot: Snapshot) -> None:
        raise SkorlyStoreError("Snapshot disk is full.")


class UnreadableHistorySnapshotStore(SnapshotStore):
    """Snapshot store whose history read crashes for one student."""

    def history(
        self, student_id: str, limit: int | None = DEFAULT_HISTORY_LIMIT
    ) -> list[Snapshot]:
        if student_id == "CS2204":
            raise RuntimeError("history index corrupted")
        return super().history(student_id, limit)


def _build(
    tmp_path: Path,
    client_set: PlatformClientSet,
    snapshot_store: SnapshotStore | None = None,
    **overrides: object,
) -> tuple[IngestOrchestrator, SnapshotStore, WorkerPool]:
    config = make_config(tmp_path, **overrides)
    batch_store = BatchStore(tmp_path)
    snapshots = snapshot_store or SnapshotStore(tmp_path)
    pool = WorkerPool(config.concurrency)
    orchestrator = IngestOrchestrator(
        config=config,
        batch_store=batch_store,
        week_sequencer=WeekSequencer(batch_store),
        services=TaskServices(
            student_store=StudentStore(tmp_path),
            snapshot_store=snapshots,
            client_set=client_set,
            weights=ScoringWeights(),
            task_timeout_seconds=config.task_timeout_seconds,
        ),
        pool=pool,
    )
    return orchestrator, snapshots, pool


async def _wait_until(predicate: Callable[[], bool]) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout=5.0)


def _roster() -> list[StudentRecord]:
    return [
        StudentRecord(
            "cs2101",
            "Asha Raman",
            platforms={"codeforces": "asha_r", "leetcode": "asha.codes", "github": ""},
        ),
        StudentRecord("CS2102", "Vikram Nair", platforms={"codeforces": "vik-n"}),
        StudentRecord("CS2103", "Meera Das"),
    ]


def _platforms(codeforces_ratings: dict[str, int]) -> PlatformClientSet:
    return build_fake_client_set(
        FakeAdapter(
            "codeforces",
            stats={
                username: PlatformStats(rating=rating, max_rating=rating, problems_solved=50)
                for username, rating in codeforces_ratings.items()
            },
        ),
        FakeAdapter(
            "leetcode",
            errors={"asha.codes": PermanentFetchError("leetcode", "LeetCode user not found.")},
        ),
        FakeAdapter("github"),
    )


@pytest.mark.asyncio
async def test_batch_completes_with_partial_platform_failures(tmp_path) -> None:
    """Platform failures degrade a snapshot but the batch still completes."""
    orchestrator, snapshots, pool = _build(
        tmp_path, _platforms({"asha_r": 1400, "vik-n": 900})
    )

    batch_id = await orchestrator.submit(_roster())
    batch = await orchestrator.wait(batch_id)
    status = orchestrator.status(batch_id)
    stored = {snapshot.student_id: snapshot for snapshot in snapshots.load_batch(batch_id)}
    await pool.close()

    counters = batch.platform_counters
    assert (
        batch.status == "completed"
        and batch.week_label == "Week 1"
        and (batch.progress.processed, batch.progress.succeeded, batch.progress.failed)
        == (3, 3, 0)
        and status.percent_complete == 100.0
        and [record.kind for record in status.recent_errors] == ["permanent-api"]
        and (counters["codeforces"].attempted, counters["codeforces"].succeeded) == (2, 2)
        and (counters["leetcode"].attempted, counters["leetcode"].failed) == (1, 1)
        and "github" not in counters
        and stored["CS2101"].aggregate_score == 50.0
        and stored["CS2103"].aggregate_score == 0.0
        and stored["CS2103"].performance_tier == "low"
    )


@pytest.mark.asyncio
async def test_second_batch_gets_next_week_and_deltas(tmp_path) -> None:
    """Consecutive batches advance the week and diff against the prior snapshot."""
    orchestrator, snapshots, pool = _build(tmp_path, _platforms({"asha_r": 1400}))
    first_id = await orchestrator.submit(_roster()[:1])
    await orchestrator.wait(first_id)
    await pool.close()

    orchestrator, snapshots, pool = _build(tmp_path, _platforms({"asha_r": 1500}))
    second_id = await orchestrator.submit(_roster()[:1], trigger="manual")
    second = await orchestrator.wait(second_id)
    await pool.close()

    latest = snapshots.latest("CS2101")
    assert (
        second.week_number == 2
        and second.trigger == "manual"
        and latest is not None
        and latest.batch_id == second_id
        and latest.previous_score == 50.0
        and latest.trend == "stable"
        and latest.deltas[0].rating == 100
        and not latest.deltas[0].is_new
    )


@pytest.mark.asyncio
async def test_cancel_keeps_only_snapshots_written_before_cancel(tmp_path) -> None:
    """Cancelling after two of five students leaves exactly two snapshots."""
    gate = asyncio.Event()
    adapter = FakeAdapter("codeforces", gates={"user3": gate})
    orchestrator, snapshots, pool = _build(
        tmp_path, build_fake_client_set(adapter), concurrency=1
    )
    records = [
        StudentRecord(f"CS100{index}", f"Student {index}", platforms={"codeforces": f"user{index}"})
        for index in range(1, 6)
    ]

    batch_id = await orchestrator.submit(records)
    await _wait_until(lambda: "user3" in adapter.calls)
    cancelled = await orchestrator.cancel(batch_id)
    gate.set()
    batch = await orchestrator.wait(batch_id)
    await pool.close()

    assert (
        cancelled
        and batch.status == "cancelled"
        and batch.progress.processed == 2
        and len(snapshots.load_batch(batch_id)) == 2
        and adapter.calls == ["user1", "user2", "user3"]
        and not await orchestrator.cancel(batch_id)
    )


@pytest.mark.asyncio
async def test_progress_counts_timeouts_and_crashes_as_failed(tmp_path) -> None:
    """Every task resolves exactly once, so succeeded + failed == processed == total."""
    client_set = build_fake_client_set(
        FakeAdapter(
            "codeforces",
            errors={"crasher": RuntimeError("adapter exploded")},
            gates={"sleeper": asyncio.Event()},
        )
    )
    orchestrator, snapshots, pool = _build(
        tmp_path,
        client_set,
        snapshot_store=UnreadableHistorySnapshotStore(tmp_path),
        task_timeout_seconds=0.2,
    )
    records = [
        StudentRecord("CS2201", "Fine", platforms={"codeforces": "fine"}),
        StudentRecord("CS2202", "Adapter Crash", platforms={"codeforces": "crasher"}),
        StudentRecord("CS2203", "Slow", platforms={"codeforces": "sleeper"}),
        StudentRecord("CS2204", "Task Crash", platforms={"codeforces": "fine"}),
    ]

    batch_id = await orchestrator.submit(records)
    batch = await orchestrator.wait(batch_id)
    errors = orchestrator.errors(batch_id)
    await pool.close()

    progress = batch.progress
    stored = {snapshot.student_id for snapshot in snapshots.load_batch(batch_id)}
    assert (
        batch.status == "completed"
        and (progress.processed, progress.succeeded, progress.failed) == (4, 2, 2)
        and progress.succeeded + progress.failed == progress.processed
        and stored == {"CS2201", "CS2202"}
        and sorted((record.kind, record.platform or "") for record in errors)
        == [("processing", ""), ("processing", "codeforces"), ("timeout", "")]
    )


@pytest.mark.asyncio
async def test_crashing_adapter_keeps_other_platform_data(tmp_path) -> None:
    """One platform crashing still yields a snapshot from the student's other platforms."""
    client_set = build_fake_client_set(
        FakeAdapter("codeforces", errors={"asha_r": RuntimeError("unexpected payload")}),
        FakeAdapter("github", stats={"asha": PlatformStats(rating=500, problems_solved=50)}),
    )
    orchestrator, snapshots, pool = _build(tmp_path, client_set)

    batch_id = await orchestrator.submit(
        [StudentRecord("CS2101", "Asha", platforms={"codeforces": "asha_r", "github": "asha"})]
    )
    batch = await orchestrator.wait(batch_id)
    await pool.close()

    snapshot = snapshots.latest("CS2101")
    assert (
        (batch.progress.processed, batch.progress.succeeded) == (1, 1)
        and snapshot is not None
        and snapshot.active_platform_count == 1
        and snapshot.aggregate_score > 0
        and snapshot.observation_for("codeforces").fetch_status == "failed"
    )


@pytest.mark.asyncio
async def test_outage_week_does_not_reset_trend_or_deltas(tmp_path) -> None:
    """A week where every platform failed is skipped as the comparison baseline."""
    outage = build_fake_client_set(
        FakeAdapter(
            "codeforces", errors={"asha_r": TransientFetchError("codeforces", "HTTP 503")}
        )
    )
    weeks = [_platforms({"asha_r": 1600}), outage, _platforms({"asha_r": 600})]
    for client_set in weeks:
        orchestrator, snapshots, pool = _build(tmp_path, client_set)
        batch_id = await orchestrator.submit(
            [StudentRecord("CS2101", "Asha", platforms={"codeforces": "asha_r"})]
        )
        await orchestrator.wait(batch_id)
        await pool.close()

    week_three, week_two, week_one = snapshots.history("CS2101")
    delta = week_three.deltas[0]
    assert (
        not week_two.has_successful_data
        and week_three.trend == "down"
        and week_three.previous_score == week_one.aggregate_score
        and not delta.is_new
        and delta.rating == -1000
    )


@pytest.mark.asyncio
async def test_status_invariants_hold_while_batch_is_running(tmp_path) -> None:
    """Every intermediate status read has processed == succeeded + failed <= total."""
    gates = {f"user{index}": asyncio.Event() for index in range(1, 5)}
    adapter = FakeAdapter(
        "codeforces",
        errors={"user2": PermanentFetchError("codeforces", "User not found.")},
        gates=gates,
    )
    orchestrator, _, pool = _build(tmp_path, build_fake_client_set(adapter))
    records = [
        StudentRecord(f"CS400{index}", f"Student {index}", platforms={"codeforces": f"user{index}"})
        for index in range(1, 5)
    ]

    batch_id = await orchestrator.submit(records)
    reads = [orchestrator.status(batch_id)]
    for released, username in enumerate(sorted(gates), start=1):
        gates[username].set()
        await _wait_until(
            lambda: orchestrator.status(batch_id).batch.progress.processed >= released
        )
        reads.append(orchestrator.status(batch_id))
    await orchestrator.wait(batch_id)
    await pool.close()

    progress = [read.batch.progress for read in reads]
    assert (
        all(
            item.processed == item.succeeded + item.failed and item.processed <= 4
            for item in progress
        )
        and [item.processed for item in progress] == [0, 1, 2, 3, 4]
        and [read.percent_complete for read in reads] == [0.0, 25.0, 50.0, 75.0, 100.0]
        and reads[0].batch.status == "processing"
        and reads[-1].batch.status in ("processing", "completed")
    )


@pytest.mark.asyncio
async def test_cancel_discards_results_of_tasks_in_flight_on_other_workers(tmp_path) -> None:
    """Workers mid-fetch at cancel time finish their call but write nothing."""
    gates = {f"user{index}": asyncio.Event() for index in range(1, 4)}
    adapter = FakeAdapter("codeforces", gates=gates)
    orchestrator, snapshots, pool = _build(
        tmp_path, build_fake_client_set(adapter), concurrency=3
    )
    records = [
        StudentRecord(f"CS500{index}", f"Student {index}", platforms={"codeforces": f"user{index}"})
        for index in range(1, 6)
    ]

    batch_id = await orchestrator.submit(records)
    await _wait_until(lambda: len(adapter.calls) == 3)
    cancelled = await orchestrator.cancel(batch_id)
    for gate in gates.values():
        gate.set()
    batch = await orchestrator.wait(batch_id)
    await pool.close()

    assert (
        cancelled
        and batch.status == "cancelled"
        and batch.progress.processed == 0
        and snapshots.load_batch(batch_id) == []
        and sorted(adapter.calls) == ["user1", "user2", "user3"]
        and orchestrator.status(batch_id).batch.status == "cancelled"
    )


@pytest.mark.asyncio
async def test_finished_batches_are_released_without_wait(tmp_path) -> None:
    """A batch nobody waits on is dropped from memory and answered from the store."""
    adapter = FakeAdapter("codeforces", stats={"asha_r": PlatformStats(rating=1400)})
    orchestrator, _, pool = _build(tmp_path, build_fake_client_set(adapter))

    batch_id = await orchestrator.submit(
        [StudentRecord("CS2101", "Asha", platforms={"codeforces": "asha_r"})]
    )
    await _wait_until(lambda: batch_id not in orchestrator._runs)
    await pool.close()

    status = orchestrator.status(batch_id)
    assert (
        status.batch.status == "completed"
        and status.batch.progress.succeeded == 1
        and not await orchestrator.cancel(batch_id)
        and (await orchestrator.wait(batch_id)).status == "completed"
    )


@pytest.mark.asyncio
async def test_store_failure_fails_the_batch(tmp_path) -> None:
    """A snapshot persistence failure fails the whole batch."""
    orchestrator, _, pool = _build(
        tmp_path,
        build_fake_client_set(FakeAdapter("codeforces")),
        snapshot_store=FailingSnapshotStore(tmp_path),
        concurrency=1,
    )
    records = [StudentRecord(f"CS300{index}", "Student") for index in range(1, 4)]

    batch_id = await orchestrator.submit(records)
    batch = await orchestrator.wait(batch_id)
    await pool.close()

    assert (
        batch.status == "failed"
        and batch.failure_reason == "Snapshot disk is full."
        and batch.progress.processed == 0
        and batch.finished_at is not None
    )


@pytest.mark.asyncio
async def test_invalid_batch_is_rejected_before_any_batch_is_created(tmp_path) -> None:
    """Validation errors leave no batch record and reserve no week."""
    orchestrator, _, pool = _build(tmp_path, build_fake_client_set(FakeAdapter("codeforces")))
    records = [StudentRecord("CS2101", "Asha"), StudentRecord("cs2101", "Asha")]

    with pytest.raises(SkorlyValidationError):
        await orchestrator.submit(records)
    await pool.close()

    assert orchestrator.list_batches() == []


@pytest.mark.asyncio
async def test_status_reads_persisted_batches_and_rejects_unknown_ids(tmp_path) -> None:
    """Status survives a restart; unknown batches raise on status and refuse cancel."""
    orchestrator, _, pool = _build(tmp_path, build_fake_client_set(FakeAdapter("codeforces")))
    batch_id = await orchestrator.submit([StudentRecord("CS2101", "Asha")])
    await orchestrator.wait(batch_id)
    await pool.close()

    restarted, _, restarted_pool = _build(
        tmp_path, build_fake_client_set(FakeAdapter("codeforces"))
    )
    status = restarted.status(batch_id)
    cancelled = await restarted.cancel(batch_id)
    unknown_cancelled = await restarted.cancel("batch-missing")
    await restarted_pool.close()

    with pytest.raises(SkorlyBatchError):
        restarted.status("batch-missing")

    assert (
        status.batch.status == "completed"
        and status.percent_complete == 100.0
        and not cancelled
        and not unknown_cancelled
    )
