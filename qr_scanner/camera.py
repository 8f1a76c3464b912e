import argparse
import logging

import cv2 # type: ignore

from backend.config import CAMERA_INDEX
from backend.logging_config import configure_logging
from backend.services.marker import ScanStatus
from backend.services.scanning import ScanSession
from backend.services.store import SqliteAttendanceStore
from database.db import create_tables
from qr_scanner.decoder import decode_frame

logger = logging.getLogger(__name__)


def run_camera_scanner(
    host_id: str,
    camera_index: int = CAMERA_INDEX,
    *,
    session: ScanSession | None = None,
    capture=None,
    max_frames: int | None = None,
) -> ScanStatus:
    """
    Read frames from a webcam and mark attendance for `host_id` until the
    camera stops delivering frames (or `max_frames` is reached).

    Returns the last status; a camera that cannot be opened or read ends the
    loop with a DECODER_FAULT status.
    """
    session = session or ScanSession(host_id, SqliteAttendanceStore(), scanner_id=f"camera-{camera_index}")
    cap = capture if capture is not None else cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        return session.fault(f"Could not open camera {camera_index}. Check camera permissions.")

    frames = 0
    last_message = None
    try:
        while not session.halted:
            ok, frame = cap.read()
            if not ok:
                session.fault("Camera stopped delivering frames.")
                break

            text, err = decode_frame(frame)
            processed, status = session.handle_decoded(text, err)
            if processed and status["message"] != last_message:
                logger.info(status["message"])
                last_message = status["message"]

            frames += 1
            if max_frames is not None and frames >= max_frames:
                break
    finally:
        cap.release()

    return session.status


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Mark attendance from a webcam QR feed.")
    parser.add_argument("--host", required=True, help="Host identifier to mark attendance against")
    parser.add_argument("--camera", type=int, default=CAMERA_INDEX, help="Camera index")
    args = parser.parse_args(argv)

    configure_logging()
    create_tables()
    status = run_camera_scanner(args.host, args.camera)
    print(status["message"])
    return 1 if status["code"] == "DECODER_FAULT" else 0


if __name__ == "__main__":
    raise SystemExit(main())
