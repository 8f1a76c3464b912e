import os
import secrets
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("QRATTEND_DB_PATH", BASE_DIR / "database" / "qrattend.db"))
SIGNING_KEY = os.getenv("QRATTEND_SIGNING_KEY", "").strip() or secrets.token_urlsafe(32)
AUTH_TOKEN_TTL_SECONDS = int(os.getenv("QRATTEND_AUTH_TOKEN_TTL_SECONDS", "43200"))
DEFAULT_HOST_ID = os.getenv("QRATTEND_DEFAULT_HOST_ID", "host").strip() or "host"
DEFAULT_HOST_PASSWORD = os.getenv("QRATTEND_DEFAULT_HOST_PASSWORD", "host123").strip() or "host123"
LOG_LEVEL = os.getenv("QRATTEND_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


def _parse_payload_mode(value: str | None) -> str:
    normalized = (value or "").strip().lower()
    if normalized == "json":
        return "json"
    return "lenient"


CORS_ALLOW_ORIGINS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_ORIGINS"),
    ["http://localhost:3000", "http://127.0.0.1:3000"],
)
CORS_ALLOW_METHODS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_METHODS"),
    ["GET", "POST", "DELETE", "OPTIONS"],
)
CORS_ALLOW_HEADERS = _parse_csv(
    os.getenv("QRATTEND_CORS_ALLOW_HEADERS"),
    ["Authorization", "Content-Type", "Accept", "X-Scanner-Id"],
)
CORS_ALLOW_CREDENTIALS = _parse_bool(os.getenv("QRATTEND_CORS_ALLOW_CREDENTIALS"), True)
ENABLE_DEBUG_ENDPOINTS = _parse_bool(os.getenv("QRATTEND_ENABLE_DEBUG_ENDPOINTS"), False)

# Scanning
SCAN_DEBOUNCE_SECONDS = min(
    60.0,
    max(0.0, float(os.getenv("QRATTEND_SCAN_DEBOUNCE_SECONDS", "5"))),
)
SCANNER_IDLE_TTL_SECONDS = max(
    1,
    int(os.getenv("QRATTEND_SCANNER_IDLE_TTL_SECONDS", "300")),
)
PAYLOAD_MODE = _parse_payload_mode(os.getenv("QRATTEND_PAYLOAD_MODE"))
CAMERA_INDEX = int(os.getenv("QRATTEND_CAMERA_INDEX", "0"))
