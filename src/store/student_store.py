"""File-backed student profile store.

Students are upserted on every ingestion batch keyed by registration
number. Profiles are never deleted; deactivation removes a student from
roster re-runs while keeping their snapshot history queryable.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from core.constants import STUDENTS_DIR_NAME
from core.errors import SkorlyStoreError
from core.logging_config import get_logger
from core.types import Student, StudentRecord
from store.json_io import directory_lock, hold_lock, read_json_file, write_json_file
from store.payloads import student_from_payload, student_to_payload

_LOGGER = get_logger(__name__)


class StudentStore:
    """Upsert-by-id student profile persistence."""

    def __init__(self, data_root: Path) -> None:
        self._students_root = data_root / STUDENTS_DIR_NAME
        self._students_root.mkdir(parents=True, exist_ok=True)
        self._lock = directory_lock(self._students_root)

    def upsert(self, record: StudentRecord) -> Student:
        """Create or update a student profile from a submitted record.

        Args:
            record: Submitted student row.

        Returns:
            Persisted profile; reactivated if it had been deactivated.
        """
        reg_no = normalize_reg_no(record.reg_no)
        now = datetime.now(timezone.utc)
        platforms = {
            platform.lower(): username.strip()
            for platform, username in record.platforms.items()
            if username and username.strip()
        }
        with hold_lock(self._lock):
            existing = self._read(reg_no)
            student = Student(
                reg_no=reg_no,
                name=record.name.strip(),
                group=record.group.strip(),
                cohort=record.cohort.strip(),
                platforms=platforms,
                is_active=True,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self._write(student)
        _LOGGER.debug("student_upserted", reg_no=reg_no, created=existing is None)
        return student

    def load(self, reg_no: str) -> Student:
        """Load one student profile.

        Raises:
            SkorlyStoreError: If the student does not exist.
        """
        normalized = normalize_reg_no(reg_no)
        student = self._read(normalized)
        if student is None:
            raise SkorlyStoreError(
                f"Student '{normalized}' not found. Submit a batch containing the student first."
            )
        return student

    def deactivate(self, reg_no: str) -> Student:
        """Exclude a student from future roster runs."""
        with hold_lock(self._lock):
            student = self.load(reg_no)
            updated = replace(student, is_active=False, updated_at=datetime.now(timezone.utc))
            self._write(updated)
        _LOGGER.info("student_deactivated", reg_no=updated.reg_no)
        return updated

    def list_students(self, active_only: bool = False) -> list[Student]:
        """List student profiles ordered by registration number."""
        students: list[Student] = []
        for student_path in sorted(self._students_root.glob("*.json")):
            payload = read_json_file(student_path)
            if not isinstance(payload, dict):
                raise SkorlyStoreError(f"Invalid student payload at {student_path}.")
            student = student_from_payload(payload)
            if active_only and not student.is_active:
                continue
            students.append(student)
        return students

    def _read(self, reg_no: str) -> Student | None:
        student_path = self._student_path(reg_no)
        if not student_path.exists():
            return None
        payload = read_json_file(student_path)
        if not isinstance(payload, dict):
            raise SkorlyStoreError(f"Invalid student payload at {student_path}.")
        return student_from_payload(payload)

    def _write(self, student: Student) -> None:
        write_json_file(self._student_path(student.reg_no), student_to_payload(student))

    def _student_path(self, reg_no: str) -> Path:
        return self._students_root / f"{reg_no}.json"


def normalize_reg_no(reg_no: str) -> str:
    """Return the canonical upper-cased registration number."""
    return reg_no.strip().upper()
