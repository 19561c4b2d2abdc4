"""Roster re-run trigger shared by manual and scheduled runs."""

from __future__ import annotations

import asyncio

from core.errors import SkorlyTriggerError, SkorlyValidationError
from core.logging_config import get_logger
from core.types import BatchTrigger
from ingest.orchestrator import IngestOrchestrator
from store.student_store import StudentStore

_LOGGER = get_logger(__name__)


class RosterTrigger:
    """Re-submits the active roster as a new batch, one run at a time.

    ``is_running`` stays set from submission until the batch finishes so a
    manual run and a scheduled run can never overlap.
    """

    def __init__(self, orchestrator: IngestOrchestrator, student_store: StudentStore) -> None:
        self._orchestrator = orchestrator
        self._student_store = student_store
        self._running = False
        self._watcher: asyncio.Task[None] | None = None
        self.last_batch_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def trigger(self, trigger: BatchTrigger = "manual") -> str:
        """Submit the active roster.

        Args:
            trigger: ``manual`` or ``scheduled``.

        Returns:
            Id of the submitted batch.

        Raises:
            SkorlyTriggerError: If a roster run is already in progress.
            SkorlyValidationError: If there are no active students.
        """
        if self._running:
            raise SkorlyTriggerError(
                f"A roster run is already in progress (batch {self.last_batch_id}). "
                "Wait for it to finish before triggering another."
            )
        self._running = True
        try:
            records = [student.to_record() for student in self._student_store.list_students(True)]
            if not records:
                raise SkorlyValidationError(
                    "No active students to re-run. Submit a roster batch first."
                )
            batch_id = await self._orchestrator.submit(records, trigger=trigger)
        except BaseException:
            self._running = False
            raise
        self.last_batch_id = batch_id
        self._watcher = asyncio.create_task(self._watch(batch_id))
        _LOGGER.info("roster_run_started", batch_id=batch_id, trigger=trigger)
        return batch_id

    async def wait_idle(self) -> None:
        """Wait until the current roster run, if any, has finished."""
        if self._watcher is not None:
            await self._watcher

    async def _watch(self, batch_id: str) -> None:
        try:
            batch = await self._orchestrator.wait(batch_id)
            _LOGGER.info("roster_run_finished", batch_id=batch_id, status=batch.status)
        finally:
            self._running = False
