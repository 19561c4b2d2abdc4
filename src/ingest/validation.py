"""Batch validation before any external call."""

from __future__ import annotations

import re
from typing import Sequence

from core.constants import (
    REG_NO_MAX_LENGTH,
    REG_NO_MIN_LENGTH,
    REG_NO_PATTERN,
    USERNAME_MAX_LENGTH,
    USERNAME_PATTERN,
)
from core.errors import SkorlyValidationError
from core.types import StudentRecord
from store.student_store import normalize_reg_no

_REG_NO_RE = re.compile(REG_NO_PATTERN)
_USERNAME_RE = re.compile(USERNAME_PATTERN)


def validate_student_records(
    records: Sequence[StudentRecord],
    max_batch_size: int,
) -> tuple[StudentRecord, ...]:
    """Validate a submitted batch.

    Args:
        records: Submitted student rows.
        max_batch_size: Largest accepted batch.

    Returns:
        The records, unchanged, as a tuple.

    Raises:
        SkorlyValidationError: If the batch is empty, too large, repeats a
            student, or contains a malformed row.
    """
    if not records:
        raise SkorlyValidationError("Batch is empty. Submit at least one student record.")
    if len(records) > max_batch_size:
        raise SkorlyValidationError(
            f"Batch has {len(records)} students; the maximum is {max_batch_size}. "
            "Split the roster or raise SKORLY_MAX_BATCH_SIZE."
        )
    seen: set[str] = set()
    for row_number, record in enumerate(records, 1):
        reg_no = _validate_record(row_number, record)
        if reg_no in seen:
            raise SkorlyValidationError(
                f"Row {row_number}: student '{reg_no}' appears more than once in the batch."
            )
        seen.add(reg_no)
    return tuple(records)


def _validate_record(row_number: int, record: StudentRecord) -> str:
    reg_no = normalize_reg_no(record.reg_no)
    if not REG_NO_MIN_LENGTH <= len(reg_no) <= REG_NO_MAX_LENGTH:
        raise SkorlyValidationError(
            f"Row {row_number}: registration number {record.reg_no!r} must be "
            f"{REG_NO_MIN_LENGTH}-{REG_NO_MAX_LENGTH} characters."
        )
    if not _REG_NO_RE.match(reg_no):
        raise SkorlyValidationError(
            f"Row {row_number}: registration number {record.reg_no!r} may only contain "
            "letters and digits."
        )
    if not record.name.strip():
        raise SkorlyValidationError(f"Row {row_number}: student '{reg_no}' has no name.")
    for platform, username in record.platforms.items():
        cleaned = (username or "").strip()
        if not cleaned:
            continue
        if len(cleaned) > USERNAME_MAX_LENGTH or not _USERNAME_RE.match(cleaned):
            raise SkorlyValidationError(
                f"Row {row_number}: invalid {platform} username {username!r} for '{reg_no}'. "
                f"Use up to {USERNAME_MAX_LENGTH} letters, digits, '_', '.', or '-'."
            )
    return reg_no
