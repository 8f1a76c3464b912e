import logging
import threading
import time

from backend.config import PAYLOAD_MODE, SCAN_DEBOUNCE_SECONDS, SCANNER_IDLE_TTL_SECONDS
from backend.errors import DecoderFault
from backend.services.debounce import InFlightGuard, ScanDebouncer
from backend.services.marker import (
    MSG_DECODER_FAULT,
    AttendanceMarker,
    ScanStatus,
    build_status,
    idle_status,
)
from backend.services.store import AttendanceStore, SqliteAttendanceStore
from qr_scanner.decoder import QRNotFound

logger = logging.getLogger(__name__)

DEFAULT_SCANNER_ID = "default"


class ScanSession:
    """
    One active scanning view: a host, a scanner device, and the current status.

    Decoded results are gated twice: the in-flight guard keeps marks strictly
    sequential on this device, and the debouncer drops repeats of a payload
    for a short window. Suppressed or busy scans never replace the status.
    """

    def __init__(
        self,
        host_id: str,
        store: AttendanceStore,
        *,
        scanner_id: str = DEFAULT_SCANNER_ID,
        debounce_seconds: float = SCAN_DEBOUNCE_SECONDS,
        payload_mode: str = PAYLOAD_MODE,
        debouncer: ScanDebouncer | None = None,
    ):
        self.host_id = host_id
        self.scanner_id = scanner_id
        self.debouncer = debouncer or ScanDebouncer(debounce_seconds)
        self.guard = InFlightGuard()
        self.marker = AttendanceMarker(store, payload_mode="json" if payload_mode == "json" else "lenient")
        self.status: ScanStatus = idle_status()
        self.halted = False
        self.updated_at = time.monotonic()

    def fault(self, message: str = MSG_DECODER_FAULT) -> ScanStatus:
        self.halted = True
        self.status = build_status("DECODER_FAULT", message)
        logger.error("Scanner %s/%s halted: %s", self.host_id, self.scanner_id, message)
        return self.status

    def restart(self) -> ScanStatus:
        self.halted = False
        self.status = idle_status()
        return self.status

    def handle_decoded(
        self,
        text: str | None,
        error: Exception | None = None,
    ) -> tuple[bool, ScanStatus]:
        """
        Feed one decoder callback. Returns (processed, status); `processed` is
        True only when the marker ran.
        """
        self.updated_at = time.monotonic()

        if self.halted:
            return False, self.status

        if error is not None:
            if isinstance(error, DecoderFault):
                return False, self.fault(str(error) or MSG_DECODER_FAULT)
            if not isinstance(error, QRNotFound):
                logger.warning("Decoder error on %s/%s: %s", self.host_id, self.scanner_id, error)
            return False, self.status

        text = (text or "").strip()
        if not text:
            return False, self.status

        if not self.guard.try_acquire():
            return False, build_status("SCAN_BUSY", "Scan already in progress.")
        try:
            if not self.debouncer.should_process(text):
                return False, build_status("SCAN_SUPPRESSED", "Already scanned. Please wait.")
            self.status = self.marker.mark(text, self.host_id)
            return True, self.status
        finally:
            self.guard.release()


# -----------------------------
# Scanner registry (in-memory)
# -----------------------------
_REGISTRY_LOCK = threading.Lock()
_SCAN_SESSIONS: dict[tuple[str, str], ScanSession] = {}


def _cleanup_sessions(now: float) -> None:
    expired = [
        k
        for k, s in _SCAN_SESSIONS.items()
        if now - s.updated_at > SCANNER_IDLE_TTL_SECONDS and not s.guard.busy
    ]
    for k in expired:
        _SCAN_SESSIONS.pop(k, None)


def get_scan_session(host_id: str, scanner_id: str | None = None) -> ScanSession:
    key = (host_id, (scanner_id or "").strip() or DEFAULT_SCANNER_ID)
    with _REGISTRY_LOCK:
        _cleanup_sessions(time.monotonic())
        session = _SCAN_SESSIONS.get(key)
        if session is None:
            session = ScanSession(key[0], SqliteAttendanceStore(), scanner_id=key[1])
            _SCAN_SESSIONS[key] = session
        return session


def close_scan_session(host_id: str, scanner_id: str | None = None) -> bool:
    """Tear down a scanning view. An in-flight mark is left to finish on its own."""
    key = (host_id, (scanner_id or "").strip() or DEFAULT_SCANNER_ID)
    with _REGISTRY_LOCK:
        return _SCAN_SESSIONS.pop(key, None) is not None


def reset_scan_sessions() -> None:
    with _REGISTRY_LOCK:
        _SCAN_SESSIONS.clear()
