# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""ZeroOne Coding Club Server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from zocc_server.config import settings
from zocc_server.database import init_db
from zocc_server.routers import admin, auth

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    if settings.jwt_secret == "change-me-in-production":
        logger.warning("JWT_SECRET is not set - using the development default")
    if not (settings.smtp_host and settings.smtp_user):
        logger.info("SMTP not configured - one-time codes will be logged instead of emailed")
    if not settings.admin_whitelist:
        logger.warning("ADMIN_EMAILS is empty - no admin account can be created")
    yield


app = FastAPI(
    title="ZeroOne Coding Club Server",
    description="Club ERP accounts and authentication API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status, and duration for each request (no body or auth headers)."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
    return response


app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.get("/health")
async def health():
    """Health check for load balancers."""
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    uvicorn.run("zocc_server.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
