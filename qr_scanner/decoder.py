import cv2 # type: ignore
import numpy as np # type: ignore


class QRDecodeError(Exception):
    """The decoder failed on a frame (non-fatal)."""


class QRNotFound(QRDecodeError):
    """No QR code in this frame; expected on most frames of a live feed."""


def decode_frame(frame_bgr) -> tuple[str | None, QRDecodeError | None]:
    """
    Returns:
      (decoded_text, None) on success, otherwise (None, error)
    """
    if frame_bgr is None or getattr(frame_bgr, "size", 0) == 0:
        return None, QRDecodeError("empty_frame")

    try:
        detector = cv2.QRCodeDetector()
        data, points, _ = detector.detectAndDecode(frame_bgr)
    except cv2.error as e:
        return None, QRDecodeError(str(e))

    if points is None or not data:
        return None, QRNotFound("no_qr_code")
    return data, None


def decode_image_bytes(data: bytes) -> tuple[str | None, QRDecodeError | None]:
    img_array = np.frombuffer(data, np.uint8)
    frame = cv2.imdecode(img_array, cv2.IMREAD_COLOR)
    if frame is None:
        raise QRDecodeError("Invalid image data.")
    return decode_frame(frame)
