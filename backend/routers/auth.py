import sqlite3
import time

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from backend.security import HostSession, issue_session_token, require_host
from database.db import create_host, create_tables, verify_host_credentials

router = APIRouter()


class HostLogin(BaseModel):
    host_id: str
    password: str


class HostRegister(BaseModel):
    host_id: str
    password: str
    display_name: str = ""


def _token_response(host_id: str, display_name: str) -> dict:
    token, claims = issue_session_token(host_id, display_name=display_name)
    now = int(time.time())
    return {
        "access_token": token,
        "token_type": "bearer",
        "host_id": claims["sub"],
        "display_name": claims["name"],
        "expires_at": claims["exp"],
        "expires_in": max(0, int(claims["exp"]) - now),
    }


@router.post("/auth/register")
def register_host(payload: HostRegister):
    host_id = payload.host_id.strip()
    password = payload.password.strip()
    if not host_id or not password:
        raise HTTPException(status_code=400, detail="Host ID and password are required.")

    try:
        create_host(host_id, payload.display_name, password)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail="Host ID already exists.")

    return _token_response(host_id, payload.display_name.strip() or host_id)


@router.post("/auth/login")
def host_login(payload: HostLogin):
    host_id = payload.host_id.strip()
    password = payload.password.strip()

    if not host_id:
        raise HTTPException(status_code=400, detail="Host ID is required.")
    if not password:
        raise HTTPException(status_code=400, detail="Password is required.")

    try:
        host = verify_host_credentials(host_id, password)
    except sqlite3.OperationalError:
        # Self-heal when DB schema is missing (e.g., startup/lifespan skipped).
        try:
            create_tables()
            host = verify_host_credentials(host_id, password)
        except sqlite3.OperationalError:
            raise HTTPException(
                status_code=503,
                detail="Authentication service unavailable. Please retry.",
            )

    if not host:
        raise HTTPException(status_code=401, detail="Invalid host credentials.")

    return _token_response(host["id"], host["display_name"])


@router.get("/auth/me")
def auth_me(session: HostSession = Depends(require_host)):
    return {
        "host_id": session.host_id,
        "display_name": session.display_name,
        "issued_at": session.issued_at,
        "expires_at": session.expires_at,
    }
