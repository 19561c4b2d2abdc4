"""Unit tests for batch lifecycle persistence."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest

from core.errors import SkorlyBatchError
from core.types import BatchProgress, ErrorRecord, IngestionBatch
from store.batch_lifecycle import validate_transition
from store.batch_store import BatchStore


def _batch(batch_id: str, week_number: int) -> IngestionBatch:
    return IngestionBatch(
        batch_id=batch_id,
        submitted_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        total_students=3,
        status="pending",
        week_number=week_number,
        week_label=f"Week {week_number}",
    )


def test_create_and_save_round_trip(tmp_path) -> None:
    """Saved batch state should load back unchanged."""
    store = BatchStore(tmp_path)
    store.create(_batch("batch-a", 1))
    updated = replace(
        _batch("batch-a", 1),
        status="processing",
        progress=BatchProgress(processed=2, succeeded=1, failed=1),
    )

    store.save(updated)

    assert store.load("batch-a") == updated and store.latest_week_number() == 1


def test_create_rejects_duplicate_batch_ids(tmp_path) -> None:
    """Batch ids are unique in the index."""
    store = BatchStore(tmp_path)
    store.create(_batch("batch-a", 1))

    with pytest.raises(SkorlyBatchError, match="already exists"):
        store.create(_batch("batch-a", 2))


def test_list_batches_keeps_creation_order(tmp_path) -> None:
    """Listing should follow creation order, not file system order."""
    store = BatchStore(tmp_path)
    for batch_id, week in (("zeta", 1), ("alpha", 2), ("mid", 3)):
        store.create(_batch(batch_id, week))

    assert [batch.batch_id for batch in store.list_batches()] == ["zeta", "alpha", "mid"]


def test_error_log_is_append_only_with_tail_limit(tmp_path) -> None:
    """Error log should keep every entry and return the most recent on request."""
    store = BatchStore(tmp_path)
    store.create(_batch("batch-a", 1))
    for index in range(12):
        store.append_error(
            "batch-a",
            ErrorRecord(
                kind="permanent-api",
                message=f"error {index}",
                timestamp=datetime(2026, 3, 1, 0, index, tzinfo=timezone.utc),
                student_id="CS2101",
                platform="codeforces",
            ),
        )

    recent = store.load_errors("batch-a", limit=10)

    assert (
        len(store.load_errors("batch-a")) == 12
        and len(recent) == 10
        and recent[0].message == "error 2"
        and recent[-1].platform == "codeforces"
    )


def test_load_unknown_batch_raises(tmp_path) -> None:
    """Unknown batch ids should raise with a discovery hint."""
    with pytest.raises(SkorlyBatchError, match="not found"):
        BatchStore(tmp_path).load("missing")


def test_validate_transition_rejects_leaving_terminal_state() -> None:
    """Terminal batch states have no outgoing transitions."""
    validate_transition("pending", "processing")

    with pytest.raises(SkorlyBatchError):
        validate_transition("cancelled", "processing")
    with pytest.raises(SkorlyBatchError):
        validate_transition("pending", "completed")
