import io
import json

import qrcode


def student_payload(student_id: str) -> str:
    """Canonical QR payload for a student identifier."""
    return json.dumps({"id": student_id}, separators=(",", ":"))


def render_qr_png(payload: str, *, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
