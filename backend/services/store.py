import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from backend.errors import DuplicateRecordError, StoreError
from database import db

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttendanceRecord:
    id: int
    student_id: str
    host_id: str
    scanned_at: str


class AttendanceStore(Protocol):
    def find_record(self, student_id: str, host_id: str) -> AttendanceRecord | None: ...

    def insert_record(self, student_id: str, host_id: str, scanned_at: datetime) -> AttendanceRecord: ...


class SqliteAttendanceStore:
    """
    Attendance store backed by the `attendance` table.

    Each call is its own round trip; nothing here makes the lookup and the
    insert atomic. Duplicate protection comes from UNIQUE(student_id, host_id),
    surfaced as `DuplicateRecordError`.
    """

    def find_record(self, student_id: str, host_id: str) -> AttendanceRecord | None:
        try:
            row = db.find_attendance(student_id, host_id)
        except sqlite3.Error as e:
            logger.warning("Attendance lookup failed for %s/%s: %s", student_id, host_id, e)
            raise StoreError(str(e)) from e

        if not row:
            return None
        return AttendanceRecord(
            id=int(row[0]),
            student_id=str(row[1]),
            host_id=str(row[2]),
            scanned_at=str(row[3]),
        )

    def insert_record(self, student_id: str, host_id: str, scanned_at: datetime) -> AttendanceRecord:
        try:
            record_id, stamp = db.insert_attendance(student_id, host_id, scanned_at)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                logger.warning("Attendance insert rejected for %s/%s: %s", student_id, host_id, e)
                raise StoreError(str(e)) from e
            raise DuplicateRecordError(str(e)) from e
        except sqlite3.Error as e:
            logger.warning("Attendance insert failed for %s/%s: %s", student_id, host_id, e)
            raise StoreError(str(e)) from e

        return AttendanceRecord(
            id=record_id,
            student_id=student_id,
            host_id=host_id,
            scanned_at=stamp,
        )
