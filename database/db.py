import hashlib
import hmac
import secrets
import sqlite3
from datetime import date as date_cls, datetime
from typing import Any

from backend.config import DB_PATH, DEFAULT_HOST_ID, DEFAULT_HOST_PASSWORD


PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 120_000
STUDENT_ID_PREFIX = "S"


def _hash_password(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    ).hex()
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest}"


def _verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, rounds_text, salt_value, expected_digest = password_hash.split("$", 3)
        rounds = int(rounds_text)
    except (ValueError, TypeError):
        return False

    if algo != PASSWORD_HASH_ALGO or rounds <= 0:
        return False

    candidate_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        rounds,
    ).hex()
    return hmac.compare_digest(candidate_digest, expected_digest)


def connect_db():
    return sqlite3.connect(str(DB_PATH), timeout=15, check_same_thread=False)


def _ensure_default_host(cursor: sqlite3.Cursor) -> None:
    host_id = (DEFAULT_HOST_ID or "").strip()
    password = (DEFAULT_HOST_PASSWORD or "").strip()
    if not host_id or not password:
        return

    cursor.execute(
        """
        SELECT id
        FROM hosts
        WHERE id = ? COLLATE NOCASE
        """,
        (host_id,),
    )
    if cursor.fetchone():
        return

    cursor.execute(
        """
        INSERT INTO hosts (id, display_name, password_hash)
        VALUES (?, ?, ?)
        """,
        (host_id, host_id, _hash_password(password)),
    )


def create_tables():
    conn = connect_db()
    cursor = conn.cursor()

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS hosts (
        id TEXT PRIMARY KEY COLLATE NOCASE,
        display_name TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """
    )

    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS students (
        id TEXT PRIMARY KEY,
        lastname TEXT NOT NULL,
        firstname TEXT NOT NULL,
        course TEXT NOT NULL,
        year_section TEXT NOT NULL,
        registered_on TEXT NOT NULL,     -- YYYY-MM-DD (local)
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(lastname, firstname, course, year_section, registered_on)
    )
    """
    )

    # One record per (student, host); the insert is the arbiter for duplicates.
    cursor.execute(
        """
    CREATE TABLE IF NOT EXISTS attendance (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        student_id TEXT NOT NULL,
        host_id TEXT NOT NULL,
        scanned_at TEXT NOT NULL,        -- ISO timestamp (local)
        UNIQUE(student_id, host_id)
    )
    """
    )
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_host ON attendance(host_id)")

    _ensure_default_host(cursor)

    conn.commit()
    conn.close()


# -----------------------------
# Hosts
# -----------------------------
def create_host(host_id: str, display_name: str, password: str) -> str:
    clean_id = host_id.strip()
    clean_password = password.strip()
    if not clean_id or not clean_password:
        raise ValueError("Host ID and password are required.")

    conn = connect_db()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            INSERT INTO hosts (id, display_name, password_hash)
            VALUES (?, ?, ?)
            """,
            (clean_id, display_name.strip() or clean_id, _hash_password(clean_password)),
        )
        conn.commit()
    finally:
        conn.close()
    return clean_id


def verify_host_credentials(host_id: str, password: str) -> dict | None:
    clean_id = host_id.strip()
    clean_password = password.strip()
    if not clean_id or not clean_password:
        return None

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, display_name, password_hash
        FROM hosts
        WHERE id = ? COLLATE NOCASE
        """,
        (clean_id,),
    )
    row = cur.fetchone()
    conn.close()

    if not row:
        return None
    if not _verify_password(clean_password, str(row[2])):
        return None
    return {"id": str(row[0]), "display_name": str(row[1])}


# -----------------------------
# Students
# -----------------------------
def _new_student_id() -> str:
    return f"{STUDENT_ID_PREFIX}{secrets.token_hex(4).upper()}"


def register_student(
    lastname: str,
    firstname: str,
    course: str,
    year_section: str,
    *,
    registered_on: str | None = None,
) -> tuple[str, bool]:
    """
    Return (student_id, created) for today's registration of this student.

    A second registration with the same details on the same day returns the
    existing identifier instead of creating a new row.
    """
    day = registered_on or date_cls.today().isoformat()
    conn = connect_db()
    cur = conn.cursor()
    try:
        cur.execute(
            """
            SELECT id
            FROM students
            WHERE lastname = ? AND firstname = ? AND course = ? AND year_section = ?
              AND registered_on = ?
            """,
            (lastname, firstname, course, year_section, day),
        )
        row = cur.fetchone()
        if row:
            return str(row[0]), False

        student_id = _new_student_id()
        cur.execute(
            """
            INSERT INTO students (id, lastname, firstname, course, year_section, registered_on)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (student_id, lastname, firstname, course, year_section, day),
        )
        conn.commit()
        return student_id, True
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent registration of the same student.
        cur.execute(
            """
            SELECT id
            FROM students
            WHERE lastname = ? AND firstname = ? AND course = ? AND year_section = ?
              AND registered_on = ?
            """,
            (lastname, firstname, course, year_section, day),
        )
        row = cur.fetchone()
        if not row:
            raise
        return str(row[0]), False
    finally:
        conn.close()


def get_student(student_id: str):
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, lastname, firstname, course, year_section, registered_on
        FROM students
        WHERE id = ?
        """,
        (student_id,),
    )
    row = cur.fetchone()
    conn.close()
    return row


# -----------------------------
# Attendance
# -----------------------------
def find_attendance(student_id: str, host_id: str):
    conn = connect_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, student_id, host_id, scanned_at
            FROM attendance
            WHERE student_id = ? AND host_id = ?
            """,
            (student_id, host_id),
        )
        return cur.fetchone()
    finally:
        conn.close()


def insert_attendance(student_id: str, host_id: str, scanned_at: datetime) -> tuple[int, str]:
    """
    Insert one attendance row and return (id, scanned_at).

    Raises sqlite3.IntegrityError when (student_id, host_id) is already present.
    """
    stamp = scanned_at.isoformat(timespec="seconds")
    conn = connect_db()
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO attendance (student_id, host_id, scanned_at)
            VALUES (?, ?, ?)
            """,
            (student_id, host_id, stamp),
        )
        record_id = int(cur.lastrowid)
        conn.commit()
        return record_id, stamp
    finally:
        conn.close()


def count_attendance(student_id: str | None = None, host_id: str | None = None) -> int:
    where = ["1=1"]
    params: list[Any] = []
    if student_id is not None:
        where.append("student_id = ?")
        params.append(student_id)
    if host_id is not None:
        where.append("host_id = ?")
        params.append(host_id)

    conn = connect_db()
    cur = conn.cursor()
    cur.execute(f"SELECT COUNT(1) FROM attendance WHERE {' AND '.join(where)}", params)
    row = cur.fetchone()
    conn.close()
    return int(row[0] or 0) if row else 0


def get_host_attendance(host_id: str) -> list[dict[str, Any]]:
    """
    Attendance rows for one host joined with student profiles.

    Sorted by course, then year/section, then last name; students that were
    scanned but never registered sort first with empty profile fields.
    """
    conn = connect_db()
    cur = conn.cursor()
    cur.execute(
        """
        SELECT
            a.id,
            a.student_id,
            a.scanned_at,
            COALESCE(s.lastname, ''),
            COALESCE(s.firstname, ''),
            COALESCE(s.course, ''),
            COALESCE(s.year_section, '')
        FROM attendance a
        LEFT JOIN students s ON s.id = a.student_id
        WHERE a.host_id = ?
        ORDER BY
            COALESCE(s.course, '') ASC,
            COALESCE(s.year_section, '') ASC,
            COALESCE(s.lastname, '') ASC,
            a.scanned_at ASC
        """,
        (host_id,),
    )
    rows = cur.fetchall()
    conn.close()

    return [
        {
            "id": int(r[0]),
            "student_id": str(r[1]),
            "scanned_at": str(r[2]),
            "lastname": str(r[3]),
            "firstname": str(r[4]),
            "course": str(r[5]),
            "year_section": str(r[6]),
        }
        for r in rows
    ]
