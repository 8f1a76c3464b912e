from fastapi import APIRouter, Depends, HTTPException

from backend.config import (
    AUTH_TOKEN_TTL_SECONDS,
    CAMERA_INDEX,
    DB_PATH,
    ENABLE_DEBUG_ENDPOINTS,
    PAYLOAD_MODE,
    SCAN_DEBOUNCE_SECONDS,
    SCANNER_IDLE_TTL_SECONDS,
)
from backend.security import HostSession, require_host

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/debug/dbpath")
def dbpath(_session: HostSession = Depends(require_host)):
    if not ENABLE_DEBUG_ENDPOINTS:
        raise HTTPException(status_code=404, detail="Not found.")
    return {"db_path": str(DB_PATH)}


@router.get("/config/scanner")
def scanner_config():
    return {
        "scan_debounce_seconds": SCAN_DEBOUNCE_SECONDS,
        "scanner_idle_ttl_seconds": SCANNER_IDLE_TTL_SECONDS,
        "payload_mode": PAYLOAD_MODE,
        "camera_index": CAMERA_INDEX,
        "auth_token_ttl_seconds": AUTH_TOKEN_TTL_SECONDS,
    }
