# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""In-memory rate limiting for auth endpoints (brute-force protection).

Limits are per client address and per endpoint, over a sliding window.
Counters live in process memory, so each worker limits on its own.
"""

import math
import time
from collections import deque

from fastapi import HTTPException, Request, status

# path -> (max requests, window seconds)
LIMITS: dict[str, tuple[int, int]] = {
    "/api/auth/request-otp": (5, 60),
    "/api/auth/verify-otp": (10, 60),
    "/api/auth/register": (5, 60),
    "/api/auth/register-pending": (5, 60),
    "/api/auth/login": (10, 60),
    "/api/auth/forgot-password": (5, 300),
    "/api/auth/verify-reset-code": (10, 60),
    "/api/auth/reset-password": (10, 60),
}

# Tracked (client, path) pairs above which idle entries are swept
MAX_TRACKED = 10_000

_hits: dict[tuple[str, str], deque[float]] = {}


def _client_key(request: Request) -> str:
    """Prefer X-Forwarded-For when behind a proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def check_rate_limit(client: str, path: str, now: float | None = None) -> None:
    """Record a hit for (client, path). Raise 429 with Retry-After once the window is full."""
    if path not in LIMITS:
        return
    limit, window = LIMITS[path]
    now = time.monotonic() if now is None else now
    key = (client, path)
    hits = _hits.pop(key, None) or deque()
    while hits and hits[0] <= now - window:
        hits.popleft()
    if len(_hits) >= MAX_TRACKED:
        prune_idle(now)
    _hits[key] = hits
    if len(hits) >= limit:
        retry_after = max(1, math.ceil(hits[0] + window - now))
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
    hits.append(now)


def prune_idle(now: float | None = None) -> int:
    """Drop pairs whose hits have all left their window. Returns how many were dropped."""
    now = time.monotonic() if now is None else now
    idle = [key for key, hits in _hits.items() if not hits or hits[-1] <= now - LIMITS[key[1]][1]]
    for key in idle:
        del _hits[key]
    return len(idle)


def reset_rate_limits() -> None:
    _hits.clear()


async def rate_limit_auth_dep(request: Request) -> None:
    """FastAPI dependency: rate limit auth endpoints."""
    check_rate_limit(_client_key(request), request.url.path.rstrip("/"))
