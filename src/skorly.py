"""Public SDK surface for Skorly.

This module provides a stable import path for SDK users.
It re-exports the primary client and typed models.
"""

from __future__ import annotations

from core.config import SkorlyConfig
from core.settings import SkorlySettings, load_settings
from core.types import (
    BatchStatus,
    ComparisonSummary,
    IngestionBatch,
    PlatformObservation,
    Snapshot,
    StudentProgress,
    StudentRecord,
)
from ingest.roster_reader import read_roster
from ingest.service import SkorlyClient
from scoring.reconciliation import reconcile

__all__ = [
    "BatchStatus",
    "ComparisonSummary",
    "IngestionBatch",
    "PlatformObservation",
    "SkorlyClient",
    "SkorlyConfig",
    "SkorlySettings",
    "Snapshot",
    "StudentProgress",
    "StudentRecord",
    "load_settings",
    "read_roster",
    "reconcile",
]
