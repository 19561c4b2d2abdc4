"""Roster file readers for batch submission.

This module loads student rows from JSON, JSONL, or YAML roster files
and normalizes them into typed submission records.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from core.errors import SkorlyDependencyError, SkorlyValidationError
from core.types import StudentRecord

SUPPORTED_ROSTER_EXTENSIONS = (".json", ".jsonl", ".yaml", ".yml")


def read_roster(roster_path: str) -> list[StudentRecord]:
    """Load student records from a roster file.

    A roster is either a list of student objects or an object holding a
    ``students`` list. JSONL rosters hold one student object per line.

    Args:
        roster_path: Path to a .json, .jsonl, .yaml, or .yml file.

    Returns:
        Student records in file order.

    Raises:
        SkorlyValidationError: If the file is missing or malformed.
    """
    file_path = Path(roster_path).expanduser()
    if not file_path.is_file():
        raise SkorlyValidationError(
            f"Failed to read roster at {file_path}: file does not exist. "
            "Provide an existing roster file."
        )
    suffix = file_path.suffix.lower()
    if suffix not in SUPPORTED_ROSTER_EXTENSIONS:
        raise SkorlyValidationError(
            f"Unsupported roster format {suffix!r}. "
            f"Supported extensions: {', '.join(SUPPORTED_ROSTER_EXTENSIONS)}."
        )
    if suffix == ".jsonl":
        rows = _read_jsonl_rows(file_path)
    elif suffix == ".json":
        rows = _extract_rows(file_path, _parse_json(file_path))
    else:
        rows = _extract_rows(file_path, _parse_yaml(file_path))
    return [_parse_student_row(file_path, index, row) for index, row in enumerate(rows, 1)]


def _parse_json(file_path: Path) -> object:
    try:
        return json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise SkorlyValidationError(
            f"Failed to parse roster JSON at {file_path}: {error.msg}. Fix the JSON syntax."
        ) from error


def _parse_yaml(file_path: Path) -> object:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise SkorlyDependencyError(
            "YAML rosters require PyYAML. Install with 'pip install pyyaml'."
        ) from error
    try:
        return yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as error:
        raise SkorlyValidationError(
            f"Failed to parse roster YAML at {file_path}: {error}. Fix YAML syntax."
        ) from error


def _read_jsonl_rows(file_path: Path) -> list[object]:
    rows: list[object] = []
    for line_number, line in enumerate(file_path.read_text(encoding="utf-8").splitlines(), 1):
        if not line.strip():
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError as error:
            raise SkorlyValidationError(
                f"Failed to parse roster row at {file_path}:{line_number}: {error.msg}."
            ) from error
    return rows


def _extract_rows(file_path: Path, payload: object) -> list[object]:
    if isinstance(payload, Mapping):
        payload = payload.get("students")
    if not isinstance(payload, list):
        raise SkorlyValidationError(
            f"Invalid roster at {file_path}: expected a list of students "
            "or an object with a 'students' list."
        )
    return payload


def _parse_student_row(file_path: Path, row_number: int, row: object) -> StudentRecord:
    """Convert one roster row into a StudentRecord.

    Raises:
        SkorlyValidationError: If required fields are missing.
    """
    if not isinstance(row, Mapping):
        raise SkorlyValidationError(
            f"Invalid roster row {row_number} in {file_path}: expected an object."
        )
    reg_no = row.get("reg_no")
    name = row.get("name")
    if reg_no is None or name is None:
        raise SkorlyValidationError(
            f"Invalid roster row {row_number} in {file_path}: "
            "fields 'reg_no' and 'name' are required."
        )
    return StudentRecord(
        reg_no=str(reg_no),
        name=str(name),
        group=str(row.get("group") or ""),
        cohort=str(row.get("cohort") or ""),
        platforms=_parse_platforms(file_path, row_number, row.get("platforms")),
    )


def _parse_platforms(file_path: Path, row_number: int, raw_platforms: Any) -> dict[str, str]:
    if raw_platforms is None:
        return {}
    if not isinstance(raw_platforms, Mapping):
        raise SkorlyValidationError(
            f"Invalid roster row {row_number} in {file_path}: "
            "'platforms' must map platform names to usernames."
        )
    return {
        str(platform): "" if username is None else str(username)
        for platform, username in raw_platforms.items()
    }
