"""Immutable weekly snapshot store.

This module persists one snapshot per (student, batch) as append-only
JSONL rows, indexed twice so history is queryable by student and by batch.
It also answers batch comparison queries.
"""

from __future__ import annotations

from pathlib import Path

from core.constants import (
    DEFAULT_HISTORY_LIMIT,
    SNAPSHOTS_BY_BATCH_DIR_NAME,
    SNAPSHOTS_BY_STUDENT_DIR_NAME,
    SNAPSHOTS_DIR_NAME,
)
from core.errors import SkorlyBatchError, SkorlyStoreError
from core.logging_config import get_logger
from core.types import ComparisonSummary, Snapshot
from store.comparison import build_comparison_summary
from store.json_io import (
    append_jsonl_row,
    directory_lock,
    hold_lock,
    read_jsonl_rows,
    write_jsonl_rows,
)
from store.payloads import snapshot_from_payload, snapshot_to_payload

_LOGGER = get_logger(__name__)


class SnapshotStore:
    """Append-only snapshot persistence.

    Snapshots are never rewritten. A correction is a new snapshot in a
    later batch.
    """

    def __init__(self, data_root: Path) -> None:
        snapshots_root = data_root / SNAPSHOTS_DIR_NAME
        self._by_student_root = snapshots_root / SNAPSHOTS_BY_STUDENT_DIR_NAME
        self._by_batch_root = snapshots_root / SNAPSHOTS_BY_BATCH_DIR_NAME
        self._by_student_root.mkdir(parents=True, exist_ok=True)
        self._by_batch_root.mkdir(parents=True, exist_ok=True)
        self._lock = directory_lock(snapshots_root)

    def save(self, snapshot: Snapshot) -> None:
        """Persist a new snapshot.

        The by-batch row is written first and removed again if the
        by-student row cannot be appended, so both indexes always agree.

        Args:
            snapshot: Fully reconciled snapshot.

        Raises:
            SkorlyStoreError: If a snapshot already exists for the same
                student and batch, or the write fails.
        """
        payload = snapshot_to_payload(snapshot)
        batch_path = self._batch_path(snapshot.batch_id)
        with hold_lock(self._lock):
            batch_rows = read_jsonl_rows(batch_path)
            if any(str(row.get("student_id")) == snapshot.student_id for row in batch_rows):
                raise SkorlyStoreError(
                    f"Snapshot for student '{snapshot.student_id}' already exists in batch "
                    f"'{snapshot.batch_id}'. Submit a new batch to record corrections."
                )
            append_jsonl_row(batch_path, payload)
            try:
                append_jsonl_row(self._student_path(snapshot.student_id), payload)
            except SkorlyStoreError:
                write_jsonl_rows(batch_path, batch_rows)
                raise
        _LOGGER.debug(
            "snapshot_saved",
            student_id=snapshot.student_id,
            batch_id=snapshot.batch_id,
            week_number=snapshot.week_number,
            aggregate_score=snapshot.aggregate_score,
        )

    def latest(self, student_id: str) -> Snapshot | None:
        """Return the most recent snapshot of a student, if any."""
        snapshots = self._student_snapshots(student_id)
        if not snapshots:
            return None
        return snapshots[0]

    def history(
        self, student_id: str, limit: int | None = DEFAULT_HISTORY_LIMIT
    ) -> list[Snapshot]:
        """Return up to ``limit`` snapshots of a student, most recent first.

        A ``limit`` of None returns the full history.
        """
        snapshots = self._student_snapshots(student_id)
        if limit is None:
            return snapshots
        return snapshots[: max(limit, 0)]

    def load_batch(self, batch_id: str) -> list[Snapshot]:
        """Load every snapshot written for one batch."""
        return [snapshot_from_payload(row) for row in read_jsonl_rows(self._batch_path(batch_id))]

    def batches_with_snapshots(self) -> list[str]:
        """List batch ids that have snapshots, oldest week first."""
        ordered: list[tuple[int, str]] = []
        for batch_path in self._by_batch_root.glob("*.jsonl"):
            rows = read_jsonl_rows(batch_path)
            if not rows:
                continue
            ordered.append((int(str(rows[0].get("week_number", 0))), batch_path.stem))
        return [batch_id for _, batch_id in sorted(ordered)]

    def compare(
        self,
        earlier_batch_id: str | None = None,
        later_batch_id: str | None = None,
    ) -> ComparisonSummary:
        """Compare two batches, defaulting to the two most recent ones.

        Args:
            earlier_batch_id: Baseline batch id, or None for the default pair.
            later_batch_id: Current batch id, or None for the default pair.

        Returns:
            Comparison summary joined by student id.

        Raises:
            SkorlyBatchError: If only one id is given or fewer than two
                batches have snapshots.
        """
        if (earlier_batch_id is None) != (later_batch_id is None):
            raise SkorlyBatchError(
                "Compare requires both batch ids or neither. Omit both to compare "
                "the two most recent batches."
            )
        if earlier_batch_id is None or later_batch_id is None:
            batch_ids = self.batches_with_snapshots()
            if len(batch_ids) < 2:
                raise SkorlyBatchError(
                    "At least two batches with snapshots are required for comparison. "
                    "Run another ingestion batch first."
                )
            earlier_batch_id, later_batch_id = batch_ids[-2], batch_ids[-1]
        return build_comparison_summary(
            earlier_batch_id=earlier_batch_id,
            later_batch_id=later_batch_id,
            earlier_snapshots=self.load_batch(earlier_batch_id),
            later_snapshots=self.load_batch(later_batch_id),
        )

    def _student_snapshots(self, student_id: str) -> list[Snapshot]:
        snapshots = [
            snapshot_from_payload(row) for row in read_jsonl_rows(self._student_path(student_id))
        ]
        return sorted(
            snapshots,
            key=lambda snapshot: (snapshot.week_number, snapshot.captured_at),
            reverse=True,
        )

    def _student_path(self, student_id: str) -> Path:
        return self._by_student_root / f"{student_id}.jsonl"

    def _batch_path(self, batch_id: str) -> Path:
        return self._by_batch_root / f"{batch_id}.jsonl"
