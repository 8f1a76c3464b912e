import json
import logging
from datetime import datetime
from typing import Callable, Literal, TypedDict

from backend.errors import DuplicateRecordError, InsertFailed, InvalidPayload, StoreError
from backend.services.store import AttendanceStore

logger = logging.getLogger(__name__)

StatusCode = Literal[
    "IDLE",
    "MARKED",
    "ALREADY_MARKED",
    "INVALID_PAYLOAD",
    "STORE_UNAVAILABLE",
    "INSERT_FAILED",
    "DECODER_FAULT",
    "SCAN_SUPPRESSED",
    "SCAN_BUSY",
]
MarkerState = Literal["idle", "validating", "checking", "inserting", "rejected"]
PayloadMode = Literal["lenient", "json"]

MSG_IDLE = "Ready to scan."
MSG_INVALID_PAYLOAD = "Invalid QR code format"
MSG_STORE_UNAVAILABLE = "Failed to mark attendance: attendance service unavailable"
MSG_INSERT_FAILED = "Failed to mark attendance"
MSG_DECODER_FAULT = "Failed to start scanner. Check camera permissions."


class ScanStatus(TypedDict):
    code: StatusCode
    message: str
    student_id: str | None
    duplicate: bool


def build_status(
    code: StatusCode,
    message: str,
    *,
    student_id: str | None = None,
    duplicate: bool = False,
) -> ScanStatus:
    return {
        "code": code,
        "message": message,
        "student_id": student_id,
        "duplicate": duplicate,
    }


def idle_status() -> ScanStatus:
    return build_status("IDLE", MSG_IDLE)


def already_marked_message(student_id: str) -> str:
    return f"Student ID {student_id} already marked!"


def _clean_identifier(value: object) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, str)):
        return str(value).strip()
    return ""


def parse_payload(payload: str | None, mode: PayloadMode = "lenient") -> str:
    """
    Extract the student identifier from decoded QR text.

    The canonical payload is a JSON object `{"id": "<student id>"}`. In
    lenient mode, plain text that is not JSON at all is also accepted as a
    bare identifier. Anything that looks like a JSON envelope is held to the
    canonical schema, and other JSON values (null, booleans, numbers, lists)
    are rejected.
    """
    text = (payload or "").strip()
    if not text:
        raise InvalidPayload("Empty payload.")

    try:
        data = json.loads(text)
    except ValueError:
        if mode == "json" or text[0] in "{[":
            raise InvalidPayload("Malformed JSON payload.")
        return text

    if isinstance(data, dict):
        student_id = _clean_identifier(data.get("id"))
        if not student_id:
            raise InvalidPayload("No ID found in QR.")
        return student_id

    if mode == "json" or not isinstance(data, str):
        raise InvalidPayload("Payload is not a JSON object.")
    student_id = data.strip()
    if not student_id:
        raise InvalidPayload("Empty payload.")
    return student_id


class AttendanceMarker:
    """
    Turns one decoded payload plus a host identifier into zero or one
    attendance records.

    The existence check only spares a round trip and gives a friendlier
    message; the store's uniqueness constraint decides on insert.
    """

    def __init__(
        self,
        store: AttendanceStore,
        *,
        payload_mode: PayloadMode = "lenient",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.payload_mode = payload_mode
        self._clock = clock
        self.state: MarkerState = "idle"

    def _validate(self, payload: str | None) -> str:
        self.state = "validating"
        return parse_payload(payload, self.payload_mode)

    def _check(self, student_id: str, host_id: str) -> bool:
        self.state = "checking"
        return self.store.find_record(student_id, host_id) is not None

    def _insert(self, student_id: str, host_id: str) -> None:
        self.state = "inserting"
        try:
            self.store.insert_record(student_id, host_id, self._clock())
        except DuplicateRecordError as e:
            raise InsertFailed(str(e), duplicate=True) from e
        except StoreError as e:
            raise InsertFailed(str(e)) from e

    def mark(self, payload: str | None, host_id: str) -> ScanStatus:
        student_id: str | None = None
        try:
            student_id = self._validate(payload)

            if self._check(student_id, host_id):
                self.state = "rejected"
                logger.info("Student %s already marked for host %s", student_id, host_id)
                return build_status("ALREADY_MARKED", already_marked_message(student_id), student_id=student_id)

            self._insert(student_id, host_id)
            logger.info("Attendance marked: student=%s host=%s", student_id, host_id)
            return build_status(
                "MARKED",
                f"Attendance marked for Student ID: {student_id}",
                student_id=student_id,
            )
        except InvalidPayload as e:
            logger.info("Rejected scan payload: %s", e)
            return build_status("INVALID_PAYLOAD", MSG_INVALID_PAYLOAD)
        except StoreError as e:
            logger.warning("Attendance check failed for %s/%s: %s", student_id, host_id, e)
            return build_status("STORE_UNAVAILABLE", MSG_STORE_UNAVAILABLE, student_id=student_id)
        except InsertFailed as e:
            if e.duplicate:
                # Lost the race to a concurrent scan; the store kept the other record.
                logger.info("Duplicate insert rejected for %s/%s", student_id, host_id)
                return build_status(
                    "INSERT_FAILED",
                    already_marked_message(student_id or ""),
                    student_id=student_id,
                    duplicate=True,
                )
            logger.warning("Attendance insert failed for %s/%s: %s", student_id, host_id, e)
            return build_status("INSERT_FAILED", MSG_INSERT_FAILED, student_id=student_id)
        finally:
            self.state = "idle"
