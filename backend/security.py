import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from fastapi import Header, HTTPException

from backend.config import AUTH_TOKEN_TTL_SECONDS, SIGNING_KEY


@dataclass(frozen=True)
class HostSession:
    """Identity of the scanning station, read once per scan attempt."""

    host_id: str
    display_name: str
    issued_at: int
    expires_at: int


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(payload_b64: str) -> str:
    digest = hmac.new(
        SIGNING_KEY.encode("utf-8"),
        payload_b64.encode("ascii"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(digest)


def session_expiry(issued_at: int) -> int:
    """Earlier of the TTL and the next local midnight after `issued_at`."""
    issued = datetime.fromtimestamp(issued_at)
    midnight = datetime.combine(issued.date() + timedelta(days=1), datetime.min.time())
    return min(issued_at + AUTH_TOKEN_TTL_SECONDS, int(midnight.timestamp()))


def issue_session_token(host_id: str, *, display_name: str | None = None) -> tuple[str, dict[str, Any]]:
    now = int(time.time())
    payload = {
        "sub": host_id.strip(),
        "name": (display_name or host_id).strip(),
        "iat": now,
        "exp": session_expiry(now),
    }
    payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    payload_b64 = _b64url_encode(payload_json.encode("utf-8"))
    token = f"{payload_b64}.{_sign(payload_b64)}"
    return token, payload


def decode_session_token(token: str) -> dict[str, Any] | None:
    if not token or not token.isascii() or "." not in token:
        return None

    payload_b64, signature = token.split(".", 1)
    expected = _sign(payload_b64)
    if not hmac.compare_digest(signature, expected):
        return None

    try:
        payload_raw = _b64url_decode(payload_b64).decode("utf-8")
        payload = json.loads(payload_raw)
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None

    sub = payload.get("sub")
    exp = payload.get("exp")
    if not isinstance(sub, str) or not sub.strip():
        return None
    if not isinstance(exp, int):
        return None
    if exp < int(time.time()):
        return None

    return payload


def require_host(authorization: str | None = Header(default=None)) -> HostSession:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing bearer token.")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid authorization scheme.")

    payload = decode_session_token(token.strip())
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired session token.")

    return HostSession(
        host_id=payload["sub"],
        display_name=str(payload.get("name") or payload["sub"]),
        issued_at=int(payload.get("iat") or 0),
        expires_at=int(payload["exp"]),
    )
