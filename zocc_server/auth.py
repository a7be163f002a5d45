# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication: JWT session/reset tokens and password hashing."""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from zocc_server.config import settings
from zocc_server.models import Account

RESET_PURPOSE = "password-reset"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    """Verify a password against its hash."""
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT carrying the given claims plus iat/exp."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.session_expire_minutes))
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def issue_session_token(account: Account) -> str:
    """Session token: subject and email, valid for the session TTL."""
    return create_access_token(
        {"sub": str(account.id), "email": account.email},
        timedelta(minutes=settings.session_expire_minutes),
    )


def issue_reset_token(account: Account) -> str:
    """Reset token: tagged with the reset purpose and the current password version."""
    return create_access_token(
        {
            "sub": str(account.id),
            "email": account.email,
            "purpose": RESET_PURPOSE,
            "pwv": account.password_version,
        },
        timedelta(minutes=settings.reset_token_expire_minutes),
    )


def decode_token(token: str, purpose: str | None = None) -> dict[str, Any] | None:
    """Decode and validate a JWT token.

    Returns None on any failure: bad signature, expiry, malformed claims or a
    purpose mismatch. Without ``purpose`` only session tokens (no purpose
    claim) are accepted.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        return None
    if payload.get("purpose") != purpose:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.isdigit():
        return None
    return payload


async def get_current_account_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> int:
    """Extract and validate account ID from a session token. Raises 401 if invalid."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return int(payload["sub"])
