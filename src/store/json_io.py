"""JSON and JSONL I/O helpers for student, batch, and snapshot files.

Writers in separate processes may share one data-root, so read-modify-write
sequences run under a file lock and whole-file writes go through a unique
temporary file before the atomic rename.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from filelock import FileLock, Timeout

from core.constants import STORE_LOCK_FILE_NAME, STORE_LOCK_TIMEOUT_SECONDS
from core.errors import SkorlyStoreError


def directory_lock(directory: Path) -> FileLock:
    """Build the inter-process lock guarding one store directory."""
    directory.mkdir(parents=True, exist_ok=True)
    return FileLock(str(directory / STORE_LOCK_FILE_NAME))


@contextmanager
def hold_lock(
    lock: FileLock, timeout_seconds: float = STORE_LOCK_TIMEOUT_SECONDS
) -> Iterator[None]:
    """Hold a store lock, translating a timeout into a store error."""
    try:
        lock.acquire(timeout=timeout_seconds)
    except Timeout as error:
        raise SkorlyStoreError(
            f"Timed out after {timeout_seconds:.0f}s waiting for store lock {lock.lock_file}. "
            "Another skorly process may be holding it."
        ) from error
    try:
        yield
    finally:
        lock.release()


def read_json_file(payload_path: Path, default_value: object | None = None) -> object:
    """Read JSON payload from disk with optional default when missing."""
    if default_value is not None and not payload_path.exists():
        return default_value
    try:
        return json.loads(payload_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise SkorlyStoreError(
            f"Missing required store file at {payload_path}. The record may not exist."
        ) from error
    except json.JSONDecodeError as error:
        raise SkorlyStoreError(f"Failed to parse JSON at {payload_path}: {error.msg}.") from error
    except OSError as error:
        raise SkorlyStoreError(f"Failed to read store file {payload_path}: {error}.") from error


def write_json_file(payload_path: Path, payload: object) -> None:
    """Write one JSON payload atomically with traceable errors."""
    _replace_file(payload_path, json.dumps(payload, indent=2) + "\n")


def write_jsonl_rows(payload_path: Path, rows: Sequence[object]) -> None:
    """Rewrite a JSONL log atomically with the given rows."""
    _replace_file(payload_path, "".join(json.dumps(row, sort_keys=True) + "\n" for row in rows))


def append_jsonl_row(payload_path: Path, payload: object) -> None:
    """Append one JSON row to a JSONL log."""
    try:
        payload_path.parent.mkdir(parents=True, exist_ok=True)
        with payload_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, sort_keys=True) + "\n")
    except OSError as error:
        raise SkorlyStoreError(f"Failed to append to {payload_path}: {error}.") from error


def read_jsonl_rows(payload_path: Path) -> list[dict[str, object]]:
    """Read all JSON object rows from a JSONL log; missing file reads as empty."""
    if not payload_path.exists():
        return []
    rows: list[dict[str, object]] = []
    try:
        with payload_path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                row = json.loads(line)
                if not isinstance(row, dict):
                    raise SkorlyStoreError(
                        f"Invalid row {line_number} in {payload_path}: expected JSON object."
                    )
                rows.append(row)
    except json.JSONDecodeError as error:
        raise SkorlyStoreError(f"Failed to parse JSONL at {payload_path}: {error.msg}.") from error
    except OSError as error:
        raise SkorlyStoreError(f"Failed to read {payload_path}: {error}.") from error
    return rows


def _replace_file(payload_path: Path, text: str) -> None:
    temp_name: str | None = None
    try:
        payload_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=payload_path.parent,
            prefix=f".{payload_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(text)
        os.replace(temp_name, payload_path)
    except OSError as error:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise SkorlyStoreError(f"Failed to write store file {payload_path}: {error}.") from error
