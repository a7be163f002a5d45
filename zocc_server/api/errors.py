# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Translate service failures into HTTP errors."""

from fastapi import HTTPException, status

from zocc_server.services.results import AuthFailure, FailureKind

STATUS_BY_KIND: dict[FailureKind, int] = {
    FailureKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    FailureKind.BUSY: status.HTTP_429_TOO_MANY_REQUESTS,
    FailureKind.NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    FailureKind.EXPIRED: status.HTTP_400_BAD_REQUEST,
    FailureKind.TOO_MANY_ATTEMPTS: status.HTTP_429_TOO_MANY_REQUESTS,
    FailureKind.MISMATCH: status.HTTP_400_BAD_REQUEST,
    FailureKind.NOT_VERIFIED: status.HTTP_400_BAD_REQUEST,
    FailureKind.ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    FailureKind.ID_TAKEN: status.HTTP_409_CONFLICT,
    FailureKind.NO_ACCOUNT: status.HTTP_401_UNAUTHORIZED,
    FailureKind.NOT_SET_UP: status.HTTP_401_UNAUTHORIZED,
    FailureKind.BAD_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    FailureKind.UNVERIFIED: status.HTTP_403_FORBIDDEN,
    FailureKind.NOT_APPROVED: status.HTTP_403_FORBIDDEN,
    FailureKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    FailureKind.DELIVERY_FAILED: status.HTTP_502_BAD_GATEWAY,
    FailureKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_error(failure: AuthFailure, status_override: dict[FailureKind, int] | None = None) -> HTTPException:
    code = (status_override or {}).get(failure.kind, STATUS_BY_KIND[failure.kind])
    headers = None
    if failure.retry_after is not None:
        headers = {"Retry-After": str(failure.retry_after)}
    return HTTPException(status_code=code, detail=failure.detail, headers=headers)
