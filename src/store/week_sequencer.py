"""Global week numbering for ingestion batches.

Week numbers are shared by every snapshot of a batch and strictly
increase across batches. Reservation and batch creation happen under the
registry file lock, so submissions from any process never observe the
same maximum.
"""

from __future__ import annotations

from typing import Callable

from core.logging_config import get_logger
from core.types import IngestionBatch, WeekInfo
from store.batch_store import BatchStore

_LOGGER = get_logger(__name__)


class WeekSequencer:
    """Derives and reserves the next week number from the batch registry."""

    def __init__(self, batch_store: BatchStore) -> None:
        self._batch_store = batch_store

    def next_week(self) -> WeekInfo:
        """Return the week that the next created batch would receive."""
        return week_info(self._batch_store.latest_week_number() + 1)

    def reserve(self, build_batch: Callable[[WeekInfo], IngestionBatch]) -> IngestionBatch:
        """Assign the next week to a new batch and persist it atomically.

        Args:
            build_batch: Factory producing the pending batch for a week.

        Returns:
            The persisted batch carrying its reserved week.

        Raises:
            SkorlyStoreError: If the batch cannot be persisted.
        """
        with self._batch_store.locked():
            week = self.next_week()
            batch = self._batch_store.create(build_batch(week))
        _LOGGER.info(
            "week_reserved",
            batch_id=batch.batch_id,
            week_number=week.week_number,
        )
        return batch


def week_info(week_number: int) -> WeekInfo:
    """Build week info with its display label."""
    return WeekInfo(week_number=week_number, week_label=f"Week {week_number}")
