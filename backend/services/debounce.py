import threading
import time
from typing import Callable


class ScanDebouncer:
    """
    Client-side throttle for repeated decoder callbacks.

    The same QR code stays in view for dozens of consecutive frames; each raw
    payload is admitted once and then suppressed until `window_seconds` have
    passed since its admission (or until `release` is called). This knows
    nothing about the attendance store and is not a duplicate guarantee.
    """

    def __init__(self, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = max(0.0, float(window_seconds))
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[str, float] = {}

    def _expire(self, now: float) -> None:
        expired = [k for k, admitted in self._pending.items() if now - admitted >= self.window_seconds]
        for k in expired:
            self._pending.pop(k, None)

    def should_process(self, raw_payload: str) -> bool:
        with self._lock:
            now = self._clock()
            self._expire(now)
            if raw_payload in self._pending:
                return False
            if self.window_seconds > 0:
                self._pending[raw_payload] = now
            return True

    def release(self, raw_payload: str) -> None:
        with self._lock:
            self._pending.pop(raw_payload, None)

    def pending(self) -> set[str]:
        with self._lock:
            self._expire(self._clock())
            return set(self._pending)


class InFlightGuard:
    """Single-flight lock: at most one scan is being marked per scanner at a time."""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()
