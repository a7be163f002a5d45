# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Result types shared by the account services.

Domain failures are returned, not raised. Routers translate them to HTTP
errors; storage errors still propagate as exceptions.
"""

import enum
from dataclasses import dataclass
from datetime import datetime

from zocc_server.models import Account


class FailureKind(str, enum.Enum):
    INVALID_INPUT = "invalid-input"
    BUSY = "busy"
    NOT_FOUND = "not-found"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too-many-attempts"
    MISMATCH = "mismatch"
    NOT_VERIFIED = "not-verified"
    ALREADY_REGISTERED = "already-registered"
    ID_TAKEN = "id-taken"
    NO_ACCOUNT = "no-account"
    NOT_SET_UP = "not-set-up"
    BAD_CREDENTIALS = "bad-credentials"
    UNVERIFIED = "unverified"
    NOT_APPROVED = "not-approved"
    INVALID_TOKEN = "invalid-token"
    DELIVERY_FAILED = "delivery-failed"
    INTERNAL = "internal"


@dataclass(frozen=True)
class AuthFailure:
    kind: FailureKind
    detail: str
    retry_after: int | None = None


@dataclass(frozen=True)
class IssuedCode:
    """A freshly stored code, ready for dispatch."""

    email: str
    code: str
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    token: str
    account: Account


@dataclass(frozen=True)
class Registration:
    token: str
    account: Account
