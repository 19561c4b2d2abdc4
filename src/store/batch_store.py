"""Ingestion batch lifecycle and error log persistence.

This module stores batch state records and their append-only error logs
under the configured data-root so runs remain inspectable after restarts.
"""

from __future__ import annotations

from pathlib import Path
from typing import ContextManager

from core.constants import (
    BATCH_ERRORS_FILE_NAME,
    BATCH_INDEX_FILE_NAME,
    BATCH_STATE_FILE_NAME,
    BATCHES_DIR_NAME,
)
from core.errors import SkorlyBatchError, SkorlyStoreError
from core.types import ErrorRecord, IngestionBatch
from store.json_io import (
    append_jsonl_row,
    directory_lock,
    hold_lock,
    read_json_file,
    read_jsonl_rows,
    write_json_file,
)
from store.payloads import (
    batch_from_payload,
    batch_to_payload,
    error_record_from_payload,
    error_record_to_payload,
)


class BatchStore:
    """Persistent lifecycle registry for ingestion batches."""

    def __init__(self, data_root: Path) -> None:
        self._batches_root = data_root / BATCHES_DIR_NAME
        self._batches_root.mkdir(parents=True, exist_ok=True)
        self._lock = directory_lock(self._batches_root)

    def locked(self) -> ContextManager[None]:
        """Hold the batch registry lock shared by every process on this data-root.

        The lock is reentrant within a thread, so callers may wrap ``create``
        together with a read of the registry.
        """
        return hold_lock(self._lock)

    def create(self, batch: IngestionBatch) -> IngestionBatch:
        """Persist a new batch record and register it in the index.

        Raises:
            SkorlyBatchError: If the batch id already exists.
            SkorlyStoreError: If the record cannot be written.
        """
        with self.locked():
            batch_ids = self._read_index()
            if batch.batch_id in batch_ids:
                raise SkorlyBatchError(f"Batch '{batch.batch_id}' already exists.")
            self._write_state(batch)
            batch_ids.append(batch.batch_id)
            write_json_file(self._index_path(), {"batches": batch_ids})
        return batch

    def save(self, batch: IngestionBatch) -> None:
        """Overwrite the stored state of an existing batch."""
        if not self._state_path(batch.batch_id).exists():
            raise SkorlyBatchError(
                f"Batch '{batch.batch_id}' not found. Create the batch before updating it."
            )
        self._write_state(batch)

    def load(self, batch_id: str) -> IngestionBatch:
        """Load one batch record by id.

        Raises:
            SkorlyBatchError: If the batch does not exist.
        """
        state_path = self._state_path(batch_id)
        if not state_path.exists():
            raise SkorlyBatchError(
                f"Batch '{batch_id}' not found. Use list_batches to discover valid batch ids."
            )
        payload = read_json_file(state_path)
        if not isinstance(payload, dict):
            raise SkorlyStoreError(f"Invalid batch state payload at {state_path}: expected object.")
        return batch_from_payload(payload)

    def list_batches(self) -> list[IngestionBatch]:
        """List batch records in creation order."""
        return [self.load(batch_id) for batch_id in self._read_index()]

    def latest_week_number(self) -> int:
        """Return the highest week number assigned to any batch, or 0."""
        week_numbers = [batch.week_number for batch in self.list_batches()]
        return max(week_numbers, default=0)

    def append_error(self, batch_id: str, record: ErrorRecord) -> None:
        """Append one entry to a batch error log."""
        append_jsonl_row(self._errors_path(batch_id), error_record_to_payload(record))

    def load_errors(self, batch_id: str, limit: int | None = None) -> list[ErrorRecord]:
        """Load a batch error log, optionally only its most recent entries."""
        rows = read_jsonl_rows(self._errors_path(batch_id))
        records = [error_record_from_payload(row) for row in rows]
        if limit is not None:
            return records[-limit:] if limit > 0 else []
        return records

    def _read_index(self) -> list[str]:
        index_path = self._index_path()
        payload = read_json_file(index_path, default_value={"batches": []})
        if not isinstance(payload, dict) or not isinstance(payload.get("batches"), list):
            raise SkorlyStoreError(
                f"Invalid batch index format at {index_path}: expected batches list."
            )
        return [str(item) for item in payload["batches"]]

    def _write_state(self, batch: IngestionBatch) -> None:
        write_json_file(self._state_path(batch.batch_id), batch_to_payload(batch))

    def _index_path(self) -> Path:
        return self._batches_root / BATCH_INDEX_FILE_NAME

    def _state_path(self, batch_id: str) -> Path:
        return self._batches_root / batch_id / BATCH_STATE_FILE_NAME

    def _errors_path(self, batch_id: str) -> Path:
        return self._batches_root / batch_id / BATCH_ERRORS_FILE_NAME
