# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Registration: OTP-gated immediate registration and approval-gated pending registration."""

import logging
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.auth import issue_session_token
from zocc_server.config import settings
from zocc_server.models import Account, AccountStatus, Role
from zocc_server.models.timestamp import utcnow
from zocc_server.services import accounts
from zocc_server.services.results import AuthFailure, FailureKind, Registration

logger = logging.getLogger(__name__)


def student_email_for(id_number: str) -> str:
    """Institutional email derived from an ID number."""
    return f"{id_number}@{settings.student_email_domain}".lower()


def validate_registration(
    email: str,
    id_number: str,
    full_name: str,
    password: str,
) -> AuthFailure | None:
    """Return a failure for the first invalid field, or None."""
    name_len = len(full_name)
    if not settings.full_name_min_length <= name_len <= settings.full_name_max_length:
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"Full name must be between {settings.full_name_min_length} and "
            f"{settings.full_name_max_length} characters",
        )
    if not re.fullmatch(rf"[0-9]{{{settings.id_number_length}}}", id_number):
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"ID number must be exactly {settings.id_number_length} digits",
        )
    if len(password) < settings.password_min_length:
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"Password must be at least {settings.password_min_length} characters",
        )
    if not accounts.is_valid_email(email):
        return AuthFailure(FailureKind.INVALID_INPUT, "Invalid email format")
    if email != student_email_for(id_number):
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"Email must be your institutional address ({student_email_for(id_number)})",
        )
    return None


async def register(
    db: AsyncSession,
    email: str,
    id_number: str,
    full_name: str,
    password: str,
) -> Registration | AuthFailure:
    """Complete registration for an email already verified by OTP. Logs the user in."""
    email = accounts.normalize_email(email)
    id_number = (id_number or "").strip()
    full_name = (full_name or "").strip()
    password = password or ""

    invalid = validate_registration(email, id_number, full_name, password)
    if invalid:
        return invalid

    account = await accounts.get_account_by_email(db, email)
    if account is None or not account.email_verified:
        return AuthFailure(FailureKind.NOT_VERIFIED, "Please verify your email first using OTP")
    if account.password_hash:
        return AuthFailure(FailureKind.ALREADY_REGISTERED, "Email already registered. Please login instead.")

    owner = await accounts.get_account_by_id_number(db, id_number)
    if owner is not None and owner.id != account.id:
        return AuthFailure(FailureKind.ID_TAKEN, "ID number already registered")

    completed = await accounts.complete_registration(db, account.id, id_number, full_name, password)
    if completed is None:
        current = await accounts.get_account(db, account.id)
        if current is not None and current.password_hash:
            return AuthFailure(FailureKind.ALREADY_REGISTERED, "Email already registered. Please login instead.")
        return AuthFailure(FailureKind.ID_TAKEN, "ID number already registered")

    await accounts.touch_last_login(db, completed)
    logger.info("Registered account %s (%s)", completed.id, completed.email)
    return Registration(token=issue_session_token(completed), account=completed)


async def register_pending(
    db: AsyncSession,
    email: str,
    id_number: str,
    full_name: str,
    password: str,
    phone: str | None = None,
) -> Account | AuthFailure:
    """Create an account without OTP. It cannot log in until an admin approves it."""
    email = accounts.normalize_email(email)
    id_number = (id_number or "").strip()
    full_name = (full_name or "").strip()
    password = password or ""
    phone = (phone or "").strip() or None

    invalid = validate_registration(email, id_number, full_name, password)
    if invalid:
        return invalid

    if await accounts.get_account_by_email(db, email) is not None:
        return AuthFailure(FailureKind.ALREADY_REGISTERED, "Email already registered. Please login instead.")
    if await accounts.get_account_by_id_number(db, id_number) is not None:
        return AuthFailure(FailureKind.ID_TAKEN, "ID number already registered")

    account = await accounts.create_pending_account(db, email, id_number, full_name, password, phone)
    if account is None:
        if await accounts.get_account_by_email(db, email) is not None:
            return AuthFailure(FailureKind.ALREADY_REGISTERED, "Email already registered. Please login instead.")
        return AuthFailure(FailureKind.ID_TAKEN, "ID number already registered")
    logger.info("Pending registration %s (%s) awaiting approval", account.id, account.email)
    return account


async def list_pending_accounts(db: AsyncSession) -> list[Account]:
    result = await db.execute(
        select(Account)
        .where(Account.status == AccountStatus.PENDING_APPROVAL)
        .order_by(Account.created_at.desc(), Account.id.desc())
    )
    return list(result.scalars().all())


async def approve_account(db: AsyncSession, account_id: int) -> Account | AuthFailure:
    account = await accounts.get_account(db, account_id)
    if account is None:
        return AuthFailure(FailureKind.NOT_FOUND, "Account not found")
    if account.status == AccountStatus.ACTIVE:
        return account
    now = utcnow()
    account.status = AccountStatus.ACTIVE
    account.approved_at = now
    account.reviewed_at = now
    account.rejection_reason = None
    await db.commit()
    logger.info("Approved account %s (%s)", account.id, account.email)
    return account


async def reject_account(
    db: AsyncSession,
    account_id: int,
    reason: str | None = None,
) -> Account | AuthFailure:
    account = await accounts.get_account(db, account_id)
    if account is None:
        return AuthFailure(FailureKind.NOT_FOUND, "Account not found")
    if account.role == Role.ADMIN:
        return AuthFailure(FailureKind.INVALID_INPUT, "Admin accounts cannot be rejected")
    if account.status == AccountStatus.REJECTED:
        return account
    account.status = AccountStatus.REJECTED
    account.reviewed_at = utcnow()
    account.rejection_reason = (reason or "").strip() or None
    await db.commit()
    logger.info("Rejected account %s (%s)", account.id, account.email)
    return account
