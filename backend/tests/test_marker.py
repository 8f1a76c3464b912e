import sqlite3
import threading
from datetime import datetime

import pytest

import backend.config as config
import database.db as db
from backend.errors import DuplicateRecordError, InvalidPayload, StoreError
from backend.services.marker import AttendanceMarker, parse_payload
from backend.services.store import AttendanceRecord, SqliteAttendanceStore

FIXED_NOW = datetime(2026, 2, 10, 8, 30, 0)


class StubStore:
    """In-memory store; enforces (student_id, host_id) uniqueness like the real table."""

    def __init__(self, *, existing=(), find_error=None, insert_error=None):
        self.records: dict[tuple[str, str], AttendanceRecord] = {}
        self.find_calls: list[tuple[str, str]] = []
        self.insert_calls: list[tuple[str, str, datetime]] = []
        self.find_error = find_error
        self.insert_error = insert_error
        for student_id, host_id in existing:
            self.records[(student_id, host_id)] = AttendanceRecord(
                id=len(self.records) + 1,
                student_id=student_id,
                host_id=host_id,
                scanned_at="2026-02-10T08:00:00",
            )

    def find_record(self, student_id, host_id):
        self.find_calls.append((student_id, host_id))
        if self.find_error:
            raise self.find_error
        return self.records.get((student_id, host_id))

    def insert_record(self, student_id, host_id, scanned_at):
        self.insert_calls.append((student_id, host_id, scanned_at))
        if self.insert_error:
            raise self.insert_error
        key = (student_id, host_id)
        if key in self.records:
            raise DuplicateRecordError("UNIQUE constraint failed: attendance.student_id, attendance.host_id")
        record = AttendanceRecord(
            id=len(self.records) + 1,
            student_id=student_id,
            host_id=host_id,
            scanned_at=scanned_at.isoformat(timespec="seconds"),
        )
        self.records[key] = record
        return record


def _marker(store, **kwargs) -> AttendanceMarker:
    return AttendanceMarker(store, clock=lambda: FIXED_NOW, **kwargs)


@pytest.mark.parametrize("payload", ['{"id":"S123"}', "S123", "  S123  ", '{"id": " S123 "}', '"S123"'])
def test_payload_formats_resolve_to_identifier(payload):
    assert parse_payload(payload) == "S123"


def test_numeric_json_identifier_is_stringified():
    assert parse_payload('{"id": 42}') == "42"


@pytest.mark.parametrize(
    "payload",
    [
        "{}",
        "",
        "   ",
        None,
        '{"id": ""}',
        '{"id": "   "}',
        '{"name": "S123"}',
        '""',
        '{"id":"S123"',
        "{",
        '{"id":"S1"}}',
        "null",
        "true",
        "[]",
        '["S123"]',
        "42",
    ],
)
def test_invalid_payloads_rejected(payload):
    with pytest.raises(InvalidPayload):
        parse_payload(payload)


def test_json_mode_rejects_plain_identifier():
    assert parse_payload('{"id":"S123"}', "json") == "S123"
    with pytest.raises(InvalidPayload):
        parse_payload("S123", "json")


@pytest.mark.parametrize("payload", ["{}", "", '{"id":"S123"', "null", "[]", '{"id":"S1"}}'])
def test_mark_invalid_payload_touches_no_store(payload):
    store = StubStore()
    status = _marker(store).mark(payload, "H1")
    assert status["code"] == "INVALID_PAYLOAD"
    assert status["student_id"] is None
    assert store.find_calls == []
    assert store.insert_calls == []


def test_mark_already_marked_issues_no_insert():
    store = StubStore(existing=[("S123", "H1")])
    status = _marker(store).mark("S123", "H1")
    assert status["code"] == "ALREADY_MARKED"
    assert status["student_id"] == "S123"
    assert status["message"] == "Student ID S123 already marked!"
    assert store.insert_calls == []


def test_mark_happy_path_inserts_once():
    store = StubStore()
    marker = _marker(store)
    status = marker.mark('{"id":"S123"}', "H1")
    assert status["code"] == "MARKED"
    assert status["student_id"] == "S123"
    assert status["message"] == "Attendance marked for Student ID: S123"
    assert store.insert_calls == [("S123", "H1", FIXED_NOW)]
    assert marker.state == "idle"


def test_mark_twice_yields_single_record():
    store = StubStore()
    marker = _marker(store)
    first = marker.mark("S123", "H1")
    second = marker.mark("S123", "H1")
    assert first["code"] == "MARKED"
    assert second["code"] == "ALREADY_MARKED"
    assert len(store.records) == 1


def test_store_unavailable_on_check_skips_insert():
    store = StubStore(find_error=StoreError("database is locked"))
    status = _marker(store).mark("S123", "H1")
    assert status["code"] == "STORE_UNAVAILABLE"
    assert status["student_id"] == "S123"
    assert store.insert_calls == []


def test_insert_failure_is_generic_when_not_duplicate():
    store = StubStore(insert_error=StoreError("disk I/O error"))
    status = _marker(store).mark("S123", "H1")
    assert status["code"] == "INSERT_FAILED"
    assert status["duplicate"] is False
    assert status["message"] == "Failed to mark attendance"


def test_duplicate_insert_is_reported_as_already_marked():
    store = StubStore(insert_error=DuplicateRecordError("UNIQUE constraint failed"))
    status = _marker(store).mark("S123", "H1")
    assert status["code"] == "INSERT_FAILED"
    assert status["duplicate"] is True
    assert status["message"] == "Student ID S123 already marked!"


def test_marker_state_walks_through_check_and_insert():
    seen = []

    class RecordingStore(StubStore):
        def find_record(self, student_id, host_id):
            seen.append(marker.state)
            return super().find_record(student_id, host_id)

        def insert_record(self, student_id, host_id, scanned_at):
            seen.append(marker.state)
            return super().insert_record(student_id, host_id, scanned_at)

    marker = _marker(RecordingStore())
    marker.mark("S123", "H1")
    assert seen == ["checking", "inserting"]
    assert marker.state == "idle"


# -----------------------------
# SQLite store
# -----------------------------
@pytest.fixture()
def sqlite_store(tmp_path, monkeypatch):
    test_db = tmp_path / "qrattend_marker.db"
    monkeypatch.setattr(config, "DB_PATH", test_db)
    monkeypatch.setattr(db, "DB_PATH", test_db)
    db.create_tables()
    return SqliteAttendanceStore()


def test_sqlite_store_enforces_uniqueness(sqlite_store):
    record = sqlite_store.insert_record("S123", "H1", FIXED_NOW)
    assert record.scanned_at == "2026-02-10T08:30:00"
    assert sqlite_store.find_record("S123", "H1") == record
    assert sqlite_store.find_record("S123", "H2") is None

    with pytest.raises(DuplicateRecordError):
        sqlite_store.insert_record("S123", "H1", FIXED_NOW)


def test_sqlite_store_only_maps_unique_violations_to_duplicates(sqlite_store, monkeypatch):
    def failing_insert(student_id, host_id, scanned_at):
        raise sqlite3.IntegrityError("NOT NULL constraint failed: attendance.scanned_at")

    monkeypatch.setattr(db, "insert_attendance", failing_insert)
    with pytest.raises(StoreError) as exc_info:
        sqlite_store.insert_record("S123", "H1", FIXED_NOW)
    assert not isinstance(exc_info.value, DuplicateRecordError)

    status = _marker(sqlite_store).mark("S123", "H1")
    assert status["code"] == "INSERT_FAILED"
    assert status["duplicate"] is False


def test_sqlite_store_wraps_operational_errors(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_PATH", tmp_path / "missing_dir" / "nope.db")
    store = SqliteAttendanceStore()
    with pytest.raises(StoreError):
        store.find_record("S123", "H1")


def test_concurrent_marks_leave_exactly_one_record(sqlite_store):
    barrier = threading.Barrier(2)

    class RacingStore(SqliteAttendanceStore):
        # Both scans pass the existence check before either inserts.
        def find_record(self, student_id, host_id):
            found = super().find_record(student_id, host_id)
            barrier.wait(timeout=5)
            return found

    results = []
    lock = threading.Lock()

    def scan():
        status = AttendanceMarker(RacingStore(), clock=lambda: FIXED_NOW).mark("S123", "H1")
        with lock:
            results.append(status)

    threads = [threading.Thread(target=scan) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    codes = sorted(r["code"] for r in results)
    assert codes == ["INSERT_FAILED", "MARKED"]
    failed = next(r for r in results if r["code"] == "INSERT_FAILED")
    assert failed["duplicate"] is True
    assert db.count_attendance("S123", "H1") == 1
