"""One student's end-to-end ingestion task.

A task upserts the student, fetches every platform, reconciles against
the student's stored history, and persists the new snapshot. Store calls
run in worker threads so file I/O never stalls the event loop. Per-student
failures are contained and counted; store failures fail the whole batch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from core.cancellation import CancellationToken
from core.errors import SkorlyStoreError
from core.logging_config import get_logger
from core.settings import ScoringWeights
from core.types import (
    BatchRef,
    ErrorKind,
    ErrorRecord,
    PlatformObservation,
    Snapshot,
    StudentRecord,
)
from ingest.batch_tracker import BatchTracker
from platforms.client import PlatformClientSet
from scoring.reconciliation import latest_with_data, platform_baselines, reconcile
from store.snapshot_store import SnapshotStore
from store.student_store import StudentStore, normalize_reg_no

_LOGGER = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TaskServices:
    """Shared handles every student task needs."""

    student_store: StudentStore
    snapshot_store: SnapshotStore
    client_set: PlatformClientSet
    weights: ScoringWeights
    task_timeout_seconds: float
    now: Callable[[], datetime] = utc_now


@dataclass
class BatchRun:
    """Runtime handle of one dispatched batch."""

    tracker: BatchTracker
    batch: BatchRef
    remaining: int
    token: CancellationToken = field(default_factory=CancellationToken)
    done: asyncio.Event = field(default_factory=asyncio.Event)
    on_finished: Callable[[str], None] | None = None

    async def resolve(self) -> None:
        """Mark one dispatched task as resolved; completes the batch on the last."""
        self.remaining -= 1
        if self.remaining > 0:
            return
        try:
            await self.tracker.transition("completed")
        except SkorlyStoreError as error:
            _LOGGER.error(
                "batch_state_persist_failed", batch_id=self.batch.batch_id, error=str(error)
            )
        finally:
            self.done.set()
            if self.on_finished is not None:
                self.on_finished(self.batch.batch_id)

    async def fail(self, error: SkorlyStoreError) -> None:
        """Fail the batch after an infrastructure error and stop dispatch."""
        self.token.cancel()
        _LOGGER.error(
            "batch_infrastructure_failure", batch_id=self.batch.batch_id, error=str(error)
        )
        try:
            await self.tracker.transition("failed", failure_reason=str(error))
        except SkorlyStoreError as persist_error:
            _LOGGER.error(
                "batch_state_persist_failed",
                batch_id=self.batch.batch_id,
                error=str(persist_error),
            )


@dataclass(frozen=True)
class _TaskOutcome:
    succeeded: bool
    observations: tuple[PlatformObservation, ...] = ()
    errors: tuple[ErrorRecord, ...] = ()
    snapshot: Snapshot | None = None


class StudentTask:
    """Pool job processing one student of one batch."""

    def __init__(
        self,
        record: StudentRecord,
        run: BatchRun,
        services: TaskServices,
        not_before: float,
    ) -> None:
        self._record = record
        self._run = run
        self._services = services
        self._not_before = not_before
        self._student_id = normalize_reg_no(record.reg_no)

    async def __call__(self) -> None:
        try:
            await self._execute()
        finally:
            await self._run.resolve()

    async def _execute(self) -> None:
        if self._run.token.cancelled:
            return
        delay = self._not_before - asyncio.get_running_loop().time()
        if delay > 0:
            await asyncio.sleep(delay)
        if self._run.token.cancelled:
            return
        try:
            outcome = await self._prepare_with_timeout()
            if outcome is None:
                return
            if outcome.snapshot is not None:
                if self._run.token.cancelled:
                    self._log_discarded()
                    return
                await asyncio.to_thread(self._services.snapshot_store.save, outcome.snapshot)
            await self._run.tracker.record_outcome(
                outcome.succeeded, outcome.observations, outcome.errors
            )
        except SkorlyStoreError as error:
            await self._run.fail(error)

    async def _prepare_with_timeout(self) -> _TaskOutcome | None:
        try:
            return await asyncio.wait_for(
                self._prepare(), timeout=self._services.task_timeout_seconds
            )
        except asyncio.TimeoutError:
            if self._run.token.cancelled:
                return None
            _LOGGER.warning(
                "student_task_timeout",
                batch_id=self._run.batch.batch_id,
                student_id=self._student_id,
                timeout_seconds=self._services.task_timeout_seconds,
            )
            return _TaskOutcome(
                succeeded=False,
                errors=(
                    self._error(
                        "timeout",
                        f"Student task exceeded {self._services.task_timeout_seconds:.1f}s.",
                    ),
                ),
            )
        except SkorlyStoreError:
            raise
        except Exception as error:
            _LOGGER.error(
                "student_task_failed",
                batch_id=self._run.batch.batch_id,
                student_id=self._student_id,
                error=str(error),
            )
            return _TaskOutcome(succeeded=False, errors=(self._error("processing", str(error)),))

    async def _prepare(self) -> _TaskOutcome | None:
        services = self._services
        student = await asyncio.to_thread(services.student_store.upsert, self._record)
        fetched = await services.client_set.observe_student(
            student.reg_no, student.platforms, self._run.token
        )
        if self._run.token.cancelled:
            self._log_discarded()
            return None
        history = await asyncio.to_thread(services.snapshot_store.history, student.reg_no, None)
        snapshot = reconcile(
            student_id=student.reg_no,
            batch=self._run.batch,
            observations=fetched.observations,
            prior=latest_with_data(history),
            captured_at=services.now(),
            weights=services.weights,
            baselines=platform_baselines(history),
        )
        return _TaskOutcome(
            succeeded=True,
            observations=fetched.observations,
            errors=fetched.errors,
            snapshot=snapshot,
        )

    def _log_discarded(self) -> None:
        _LOGGER.info(
            "student_result_discarded",
            batch_id=self._run.batch.batch_id,
            student_id=self._student_id,
        )

    def _error(self, kind: ErrorKind, message: str) -> ErrorRecord:
        return ErrorRecord(
            kind=kind,
            message=message,
            timestamp=self._services.now(),
            student_id=self._student_id,
        )
