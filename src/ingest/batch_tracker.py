"""Concurrency-safe progress and lifecycle tracking for one batch.

Workers finish in any order, so every update goes through one
asyncio.Lock and is persisted before the lock is released. Progress
counters only grow and always satisfy succeeded + failed == processed.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from core.logging_config import get_logger
from core.types import (
    BatchProgress,
    BatchState,
    ErrorRecord,
    IngestionBatch,
    PlatformFetchCounters,
    PlatformObservation,
)
from store.batch_lifecycle import validate_transition
from store.batch_store import BatchStore

_LOGGER = get_logger(__name__)


class BatchTracker:
    """Owns the in-memory and persisted state of one running batch."""

    def __init__(self, batch_store: BatchStore, batch: IngestionBatch) -> None:
        self._batch_store = batch_store
        self._batch = batch
        self._lock = asyncio.Lock()

    @property
    def batch(self) -> IngestionBatch:
        return self._batch

    async def transition(self, next_state: BatchState, failure_reason: str | None = None) -> bool:
        """Move the batch to a new lifecycle state.

        Args:
            next_state: Target state.
            failure_reason: Reason recorded with a ``failed`` transition.

        Returns:
            False when the batch was already terminal, True otherwise.

        Raises:
            SkorlyBatchError: If the transition is not allowed.
            SkorlyStoreError: If the new state cannot be persisted.
        """
        async with self._lock:
            if self._batch.is_terminal:
                return False
            validate_transition(self._batch.status, next_state)
            finished_at = datetime.now(timezone.utc) if next_state != "processing" else None
            self._batch = replace(
                self._batch,
                status=next_state,
                finished_at=finished_at,
                failure_reason=failure_reason,
            )
            await asyncio.to_thread(self._batch_store.save, self._batch)
        _LOGGER.info(
            "batch_state_changed",
            batch_id=self._batch.batch_id,
            status=next_state,
            processed=self._batch.progress.processed,
            total=self._batch.total_students,
        )
        return True

    async def record_outcome(
        self,
        succeeded: bool,
        observations: Iterable[PlatformObservation] = (),
        errors: Iterable[ErrorRecord] = (),
    ) -> None:
        """Count one resolved student task and append its errors.

        Args:
            succeeded: Whether the student's snapshot was persisted.
            observations: Observations used for per-platform counters.
            errors: Error records to append to the batch log.
        """
        async with self._lock:
            for record in errors:
                await asyncio.to_thread(
                    self._batch_store.append_error, self._batch.batch_id, record
                )
            progress = self._batch.progress
            self._batch = replace(
                self._batch,
                progress=BatchProgress(
                    processed=progress.processed + 1,
                    succeeded=progress.succeeded + (1 if succeeded else 0),
                    failed=progress.failed + (0 if succeeded else 1),
                ),
                platform_counters=_count_platforms(self._batch, observations),
            )
            await asyncio.to_thread(self._batch_store.save, self._batch)


def _count_platforms(
    batch: IngestionBatch,
    observations: Iterable[PlatformObservation],
) -> dict[str, PlatformFetchCounters]:
    counters = dict(batch.platform_counters)
    for observation in observations:
        if observation.fetch_status == "skipped":
            continue
        current = counters.get(observation.platform, PlatformFetchCounters())
        success = observation.fetch_status == "success"
        counters[observation.platform] = PlatformFetchCounters(
            attempted=current.attempted + 1,
            succeeded=current.succeeded + (1 if success else 0),
            failed=current.failed + (0 if success else 1),
        )
    return counters
