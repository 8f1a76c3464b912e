from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from pydantic import BaseModel

from backend.security import HostSession, require_host
from backend.services.marker import ScanStatus
from backend.services.scanning import ScanSession, close_scan_session, get_scan_session
from qr_scanner.decoder import QRDecodeError, decode_image_bytes

router = APIRouter()


class ScanPayload(BaseModel):
    payload: str


def _scan_response(session: ScanSession, processed: bool, result: ScanStatus) -> dict:
    return {
        "processed": processed,
        "host_id": session.host_id,
        "scanner_id": session.scanner_id,
        "halted": session.halted,
        **result,
        "current": session.status,
    }


@router.post("/scan")
def scan_payload(
    body: ScanPayload,
    session: HostSession = Depends(require_host),
    x_scanner_id: str | None = Header(default=None),
):
    scan = get_scan_session(session.host_id, x_scanner_id)
    processed, result = scan.handle_decoded(body.payload)
    return _scan_response(scan, processed, result)


@router.post("/scan/frame")
def scan_frame(
    session: HostSession = Depends(require_host),
    file: UploadFile = File(...),
    x_scanner_id: str | None = Header(default=None),
):
    if file.content_type not in ("image/jpeg", "image/png"):
        raise HTTPException(status_code=400, detail="Upload JPG/PNG only.")

    data = file.file.read()
    try:
        text, err = decode_image_bytes(data)
    except QRDecodeError:
        raise HTTPException(status_code=400, detail="Invalid image data.")

    scan = get_scan_session(session.host_id, x_scanner_id)
    processed, result = scan.handle_decoded(text, err)
    payload = _scan_response(scan, processed, result)
    payload["qr_found"] = text is not None
    return payload


@router.get("/scan/status")
def scan_status(
    session: HostSession = Depends(require_host),
    x_scanner_id: str | None = Header(default=None),
):
    scan = get_scan_session(session.host_id, x_scanner_id)
    return {
        "host_id": scan.host_id,
        "scanner_id": scan.scanner_id,
        "halted": scan.halted,
        "busy": scan.guard.busy,
        "current": scan.status,
    }


@router.delete("/scan/session")
def end_scan_session(
    session: HostSession = Depends(require_host),
    x_scanner_id: str | None = Header(default=None),
):
    closed = close_scan_session(session.host_id, x_scanner_id)
    return {"ok": True, "closed": closed}
