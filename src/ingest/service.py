"""Python SDK for the ingestion pipeline.

SkorlyClient builds every service handle once (stores, week sequencer,
platform clients, worker pool, orchestrator, roster trigger) and exposes
the submit, status, history, and comparison operations on top of them.
"""

from __future__ import annotations

from typing import Sequence

import httpx

from core.config import SkorlyConfig
from core.constants import DEFAULT_HISTORY_LIMIT
from core.logging_config import configure_logging
from core.settings import SkorlySettings, load_settings
from core.types import (
    BatchStatus,
    BatchTrigger,
    ComparisonSummary,
    ErrorRecord,
    IngestionBatch,
    Snapshot,
    Student,
    StudentProgress,
    StudentRecord,
    WeekInfo,
)
from ingest.orchestrator import IngestOrchestrator
from ingest.roster_trigger import RosterTrigger
from ingest.scheduler import WeeklyScheduler
from ingest.student_task import TaskServices
from ingest.worker_pool import WorkerPool
from platforms.client import PlatformClientSet, build_client_set
from scoring.progress_analysis import analyze_progress
from store.batch_store import BatchStore
from store.snapshot_store import SnapshotStore
from store.student_store import StudentStore, normalize_reg_no
from store.week_sequencer import WeekSequencer


class SkorlyClient:
    """Primary SDK entry point; use as an async context manager."""

    def __init__(
        self,
        config: SkorlyConfig | None = None,
        settings: SkorlySettings | None = None,
        client_set: PlatformClientSet | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        """Create the client and its service handles.

        Args:
            config: Optional runtime configuration; read from env when omitted.
            settings: Optional settings; loaded from ``config.settings_file`` when omitted.
            client_set: Optional platform clients, e.g. fakes in tests.
            http: Optional shared HTTP client for the default platform clients.
        """
        self._config = config or SkorlyConfig.from_env()
        configure_logging(self._config.log_level)
        self._settings = settings or load_settings(self._config.settings_file)
        self._owns_http = client_set is None and http is None
        self._http = http
        data_root = self._config.data_root
        self.student_store = StudentStore(data_root)
        self.snapshot_store = SnapshotStore(data_root)
        self.batch_store = BatchStore(data_root)
        self.week_sequencer = WeekSequencer(self.batch_store)
        if client_set is None:
            self._http = http or httpx.AsyncClient()
            client_set = build_client_set(self._config, self._settings, self._http)
        self.client_set = client_set
        self._pool = WorkerPool(self._config.concurrency)
        self.orchestrator = IngestOrchestrator(
            config=self._config,
            batch_store=self.batch_store,
            week_sequencer=self.week_sequencer,
            services=TaskServices(
                student_store=self.student_store,
                snapshot_store=self.snapshot_store,
                client_set=client_set,
                weights=self._settings.scoring,
                task_timeout_seconds=self._config.task_timeout_seconds,
            ),
            pool=self._pool,
        )
        self.roster_trigger = RosterTrigger(self.orchestrator, self.student_store)

    async def __aenter__(self) -> "SkorlyClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop the worker pool and close the owned HTTP client."""
        await self._pool.close()
        if self._owns_http and self._http is not None:
            await self._http.aclose()

    async def submit(
        self,
        records: Sequence[StudentRecord],
        trigger: BatchTrigger = "upload",
    ) -> str:
        """Submit a batch; returns its id while processing continues."""
        return await self.orchestrator.submit(records, trigger=trigger)

    def status(self, batch_id: str) -> BatchStatus:
        return self.orchestrator.status(batch_id)

    def errors(self, batch_id: str, limit: int | None = None) -> list[ErrorRecord]:
        return self.orchestrator.errors(batch_id, limit=limit)

    def list_batches(self) -> list[IngestionBatch]:
        return self.orchestrator.list_batches()

    async def cancel(self, batch_id: str) -> bool:
        return await self.orchestrator.cancel(batch_id)

    async def wait(self, batch_id: str) -> IngestionBatch:
        return await self.orchestrator.wait(batch_id)

    async def trigger_roster(self, trigger: BatchTrigger = "manual") -> str:
        """Re-submit the active roster; raises if a roster run is in progress."""
        return await self.roster_trigger.trigger(trigger)

    def scheduler(self) -> WeeklyScheduler:
        """Build the weekly scheduler bound to this client's roster trigger."""
        return WeeklyScheduler(self.roster_trigger, self._settings.schedule)

    def next_week(self) -> WeekInfo:
        return self.week_sequencer.next_week()

    def latest(self, reg_no: str) -> Snapshot | None:
        return self.snapshot_store.latest(normalize_reg_no(reg_no))

    def history(self, reg_no: str, limit: int = DEFAULT_HISTORY_LIMIT) -> list[Snapshot]:
        """Return a student's snapshots, most recent first."""
        return self.snapshot_store.history(normalize_reg_no(reg_no), limit)

    def progress(self, reg_no: str, limit: int = DEFAULT_HISTORY_LIMIT) -> StudentProgress:
        """Analyze a student's score movement over recent weeks."""
        student_id = normalize_reg_no(reg_no)
        return analyze_progress(student_id, self.snapshot_store.history(student_id, limit))

    def compare(
        self,
        earlier_batch_id: str | None = None,
        later_batch_id: str | None = None,
    ) -> ComparisonSummary:
        return self.snapshot_store.compare(earlier_batch_id, later_batch_id)

    def deactivate(self, reg_no: str) -> Student:
        return self.student_store.deactivate(reg_no)

    def rate_limiter_status(self) -> dict[str, dict[str, float]]:
        return self.client_set.rate_limiter_status()
