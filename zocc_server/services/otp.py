# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""One-time code ledger: short-lived, attempt-limited numeric codes keyed by (email, purpose)."""

import enum
import logging
import math
import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.config import settings
from zocc_server.database import upsert_for
from zocc_server.models import CodePurpose, OneTimeCode
from zocc_server.models.timestamp import as_utc, utcnow
from zocc_server.services.results import AuthFailure, FailureKind, IssuedCode

logger = logging.getLogger(__name__)


class CodeCheck(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not-found"
    EXPIRED = "expired"
    TOO_MANY_ATTEMPTS = "too-many-attempts"
    MISMATCH = "mismatch"


def generate_code(length: int | None = None) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length or settings.otp_length))


async def live_code(
    db: AsyncSession,
    email: str,
    purpose: CodePurpose,
    now: datetime | None = None,
) -> OneTimeCode | None:
    """Return the non-expired code for (email, purpose), if any."""
    now = now or utcnow()
    result = await db.execute(
        select(OneTimeCode)
        .where(
            OneTimeCode.email == email,
            OneTimeCode.purpose == purpose,
            OneTimeCode.expires_at > now,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def issue_code(
    db: AsyncSession,
    email: str,
    purpose: CodePurpose,
    now: datetime | None = None,
) -> IssuedCode | AuthFailure:
    """Store a new code unless a live one exists for (email, purpose).

    Expired leftovers are removed first; the insert itself is conditional on the
    (email, purpose) key being free, so concurrent requests cannot both win.
    """
    now = now or utcnow()
    await db.execute(
        delete(OneTimeCode)
        .where(
            OneTimeCode.email == email,
            OneTimeCode.purpose == purpose,
            OneTimeCode.expires_at <= now,
        )
        .execution_options(synchronize_session=False)
    )
    code = generate_code()
    expires_at = now + timedelta(seconds=settings.otp_ttl_seconds)
    stmt = (
        upsert_for(db, OneTimeCode)
        .values(
            email=email,
            purpose=purpose,
            code=code,
            attempts=0,
            expires_at=expires_at,
            created_at=now,
        )
        .on_conflict_do_nothing(index_elements=["email", "purpose"])
        .returning(OneTimeCode.id)
    )
    inserted = (await db.execute(stmt)).scalar_one_or_none()
    await db.commit()
    if inserted is None:
        existing = await live_code(db, email, purpose, now)
        remaining = 0
        if existing is not None:
            remaining = max(0, math.ceil((as_utc(existing.expires_at) - now).total_seconds()))
        logger.info("Code request refused, live %s code exists for %s", purpose.value, email)
        return AuthFailure(
            FailureKind.BUSY,
            f"Please wait {remaining} seconds before requesting a new code",
            retry_after=remaining,
        )
    logger.info("Issued %s code for %s", purpose.value, email)
    return IssuedCode(email=email, code=code, expires_at=expires_at)


async def revoke_code(db: AsyncSession, email: str, purpose: CodePurpose) -> None:
    """Delete the code for (email, purpose), live or not."""
    await db.execute(
        delete(OneTimeCode)
        .where(OneTimeCode.email == email, OneTimeCode.purpose == purpose)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def verify_code(
    db: AsyncSession,
    email: str,
    purpose: CodePurpose,
    candidate: str,
    now: datetime | None = None,
) -> CodeCheck:
    """Check a candidate code. Every attempt is counted and committed before the comparison."""
    now = now or utcnow()
    result = await db.execute(
        select(OneTimeCode)
        .where(OneTimeCode.email == email, OneTimeCode.purpose == purpose)
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if record is None:
        return CodeCheck.NOT_FOUND

    if now >= as_utc(record.expires_at):
        await _delete_record(db, record.id)
        return CodeCheck.EXPIRED

    if record.attempts >= settings.otp_max_attempts:
        await _delete_record(db, record.id)
        return CodeCheck.TOO_MANY_ATTEMPTS

    attempts = (
        await db.execute(
            update(OneTimeCode)
            .where(OneTimeCode.id == record.id)
            .values(attempts=OneTimeCode.attempts + 1)
            .returning(OneTimeCode.attempts)
            .execution_options(synchronize_session=False)
        )
    ).scalar_one()
    await db.commit()

    if secrets.compare_digest(record.code, (candidate or "").strip()):
        await _delete_record(db, record.id)
        return CodeCheck.OK
    if attempts >= settings.otp_max_attempts:
        await _delete_record(db, record.id)
        logger.warning("Attempt ceiling reached for %s code of %s", purpose.value, email)
        return CodeCheck.TOO_MANY_ATTEMPTS
    return CodeCheck.MISMATCH


async def purge_expired_codes(db: AsyncSession, now: datetime | None = None) -> int:
    """Delete every expired code. Returns the number of rows removed."""
    now = now or utcnow()
    result = await db.execute(
        delete(OneTimeCode)
        .where(OneTimeCode.expires_at <= now)
        .returning(OneTimeCode.id)
        .execution_options(synchronize_session=False)
    )
    removed = len(result.all())
    await db.commit()
    return removed


def code_failure(check: CodeCheck) -> AuthFailure:
    """Translate a failed code check into a returned failure."""
    if check == CodeCheck.EXPIRED:
        return AuthFailure(FailureKind.EXPIRED, "Code expired. Please request a new one.")
    if check == CodeCheck.TOO_MANY_ATTEMPTS:
        return AuthFailure(FailureKind.TOO_MANY_ATTEMPTS, "Too many attempts. Please request a new code.")
    if check == CodeCheck.MISMATCH:
        return AuthFailure(FailureKind.MISMATCH, "Invalid code. Please try again.")
    return AuthFailure(FailureKind.NOT_FOUND, "No code found. Please request a new one.")


async def _delete_record(db: AsyncSession, record_id: int) -> None:
    await db.execute(
        delete(OneTimeCode)
        .where(OneTimeCode.id == record_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
