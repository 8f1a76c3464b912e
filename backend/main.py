from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
)
from backend.logging_config import configure_logging
from backend.routers import attendance, auth, core, scan, students
from backend.services.scanning import reset_scan_sessions
from database.db import create_tables


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    create_tables()
    yield
    reset_scan_sessions()


app = FastAPI(title="qrattend API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)

app.include_router(core.router)
app.include_router(auth.router)
app.include_router(students.router)
app.include_router(scan.router)
app.include_router(attendance.router)
