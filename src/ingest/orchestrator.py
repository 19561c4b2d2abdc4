"""Batch ingestion orchestrator.

This module accepts student batches, reserves their week, dispatches one
task per student into the shared worker pool, and answers status and
cancellation requests. It is the only owner of batch lifecycle changes.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Sequence

from core.config import SkorlyConfig
from core.constants import DEFAULT_RECENT_ERROR_LIMIT
from core.errors import SkorlyStoreError
from core.logging_config import get_logger
from core.types import (
    BatchRef,
    BatchStatus,
    BatchTrigger,
    ErrorRecord,
    IngestionBatch,
    StudentRecord,
    WeekInfo,
)
from ingest.batch_tracker import BatchTracker
from ingest.student_task import BatchRun, StudentTask, TaskServices
from ingest.validation import validate_student_records
from ingest.worker_pool import WorkerPool
from store.batch_store import BatchStore
from store.week_sequencer import WeekSequencer

_LOGGER = get_logger(__name__)


class IngestOrchestrator:
    """Submits, tracks, and cancels ingestion batches."""

    def __init__(
        self,
        config: SkorlyConfig,
        batch_store: BatchStore,
        week_sequencer: WeekSequencer,
        services: TaskServices,
        pool: WorkerPool,
    ) -> None:
        self._config = config
        self._batch_store = batch_store
        self._week_sequencer = week_sequencer
        self._services = services
        self._pool = pool
        self._runs: dict[str, BatchRun] = {}

    async def submit(
        self,
        records: Sequence[StudentRecord],
        trigger: BatchTrigger = "upload",
    ) -> str:
        """Validate a batch and start processing it asynchronously.

        Args:
            records: Student rows to ingest.
            trigger: What started the batch.

        Returns:
            The new batch id; processing continues in the worker pool.

        Raises:
            SkorlyValidationError: If the batch is malformed.
            SkorlyStoreError: If the batch record cannot be persisted.
        """
        students = validate_student_records(records, self._config.max_batch_size)
        submitted_at = datetime.now(timezone.utc)
        batch_id = build_batch_id(submitted_at)

        def build_batch(week: WeekInfo) -> IngestionBatch:
            return IngestionBatch(
                batch_id=batch_id,
                submitted_at=submitted_at,
                total_students=len(students),
                status="pending",
                week_number=week.week_number,
                week_label=week.week_label,
                trigger=trigger,
            )

        batch = await asyncio.to_thread(self._week_sequencer.reserve, build_batch)
        tracker = BatchTracker(self._batch_store, batch)
        run = BatchRun(
            tracker=tracker,
            batch=BatchRef(
                batch_id=batch.batch_id,
                week=WeekInfo(week_number=batch.week_number, week_label=batch.week_label),
            ),
            remaining=len(students),
            on_finished=self._forget_run,
        )
        self._runs[batch_id] = run
        try:
            await tracker.transition("processing")
        except SkorlyStoreError as error:
            self._runs.pop(batch_id, None)
            await run.fail(error)
            raise
        dispatch_started = asyncio.get_running_loop().time()
        for position, record in enumerate(students):
            not_before = dispatch_started + position * self._config.stagger_seconds
            self._pool.submit(StudentTask(record, run, self._services, not_before))
        _LOGGER.info(
            "batch_submitted",
            batch_id=batch_id,
            trigger=trigger,
            total_students=len(students),
            week_number=batch.week_number,
        )
        return batch_id

    def status(self, batch_id: str) -> BatchStatus:
        """Return batch progress, percent complete, and the most recent errors.

        Raises:
            SkorlyBatchError: If the batch does not exist.
        """
        run = self._runs.get(batch_id)
        batch = run.tracker.batch if run is not None else self._batch_store.load(batch_id)
        percent = 0.0
        if batch.total_students:
            percent = round(100.0 * batch.progress.processed / batch.total_students, 1)
        return BatchStatus(
            batch=batch,
            percent_complete=percent,
            recent_errors=tuple(
                self._batch_store.load_errors(batch_id, limit=DEFAULT_RECENT_ERROR_LIMIT)
            ),
        )

    def errors(self, batch_id: str, limit: int | None = None) -> list[ErrorRecord]:
        """Return a batch's full error history, or its last ``limit`` entries."""
        self._batch_store.load(batch_id)
        return self._batch_store.load_errors(batch_id, limit=limit)

    def list_batches(self) -> list[IngestionBatch]:
        """List every batch in creation order."""
        return [
            self._runs[batch.batch_id].tracker.batch if batch.batch_id in self._runs else batch
            for batch in self._batch_store.list_batches()
        ]

    async def cancel(self, batch_id: str) -> bool:
        """Cancel a running batch.

        Queued tasks are dropped. Tasks mid-fetch finish their current
        platform call, then discard their results without a snapshot write.

        Returns:
            True if the batch was cancelled, False if it is terminal or unknown.
        """
        run = self._runs.get(batch_id)
        if run is None:
            _LOGGER.info("batch_cancel_ignored", batch_id=batch_id)
            return False
        run.token.cancel()
        cancelled = await run.tracker.transition("cancelled")
        if cancelled:
            _LOGGER.info(
                "batch_cancelled",
                batch_id=batch_id,
                processed=run.tracker.batch.progress.processed,
            )
        return cancelled

    async def wait(self, batch_id: str) -> IngestionBatch:
        """Wait until every task of a batch has resolved and return its final state."""
        run = self._runs.get(batch_id)
        if run is None:
            return self._batch_store.load(batch_id)
        await run.done.wait()
        return run.tracker.batch

    def _forget_run(self, batch_id: str) -> None:
        self._runs.pop(batch_id, None)


def build_batch_id(submitted_at: datetime) -> str:
    """Build a sortable unique batch id."""
    return f"batch-{submitted_at.strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:8]}"
