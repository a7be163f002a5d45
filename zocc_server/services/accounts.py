# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Credential store: account lookups and the writes the auth workflows need."""

import re
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.auth import hash_password
from zocc_server.database import upsert_for
from zocc_server.models import Account, AccountStatus, Role
from zocc_server.models.timestamp import utcnow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email))


async def get_account(db: AsyncSession, account_id: int) -> Account | None:
    result = await db.execute(
        select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_account_by_email(db: AsyncSession, email: str) -> Account | None:
    result = await db.execute(
        select(Account)
        .where(Account.email == normalize_email(email))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_account_by_id_number(db: AsyncSession, id_number: str) -> Account | None:
    result = await db.execute(
        select(Account)
        .where(Account.id_number == id_number.strip())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_account(db: AsyncSession, email_or_id: str) -> Account | None:
    """Look up by email, or by ID number when the value has no '@'."""
    value = (email_or_id or "").strip()
    if not value:
        return None
    if "@" in value:
        return await get_account_by_email(db, value)
    return await get_account_by_id_number(db, value)


async def mark_email_verified(db: AsyncSession, email: str) -> Account:
    """Create the shell account for a verified email, or flag an existing one."""
    email = normalize_email(email)
    stmt = (
        upsert_for(db, Account)
        .values(email=email, email_verified=True)
        .on_conflict_do_update(index_elements=["email"], set_={"email_verified": True})
        .returning(Account)
    )
    result = await db.execute(stmt, execution_options={"populate_existing": True})
    account = result.scalar_one()
    await db.commit()
    return account


async def complete_registration(
    db: AsyncSession,
    account_id: int,
    id_number: str,
    full_name: str,
    password: str,
) -> Account | None:
    """Set credentials on a shell account.

    Conditional on the account having no password yet. Returns None when another
    writer got there first, either on this account or on the ID number.
    """
    try:
        written = (
            await db.execute(
                update(Account)
                .where(Account.id == account_id, Account.password_hash.is_(None))
                .values(
                    id_number=id_number,
                    full_name=full_name,
                    password_hash=hash_password(password),
                    status=AccountStatus.ACTIVE,
                )
                .returning(Account.id)
                .execution_options(synchronize_session=False)
            )
        ).scalar_one_or_none()
    except IntegrityError:
        await db.rollback()
        return None
    if written is None:
        await db.rollback()
        return None
    await db.commit()
    return await get_account(db, account_id)


async def create_pending_account(
    db: AsyncSession,
    email: str,
    id_number: str,
    full_name: str,
    password: str,
    phone: str | None = None,
) -> Account | None:
    """Insert an account awaiting approval. None if the email or ID number is already taken."""
    account = Account(
        email=normalize_email(email),
        id_number=id_number,
        full_name=full_name,
        phone=phone,
        password_hash=hash_password(password),
        email_verified=False,
        role=Role.STUDENT,
        status=AccountStatus.PENDING_APPROVAL,
    )
    return await _insert_account(db, account)


async def create_admin_account(db: AsyncSession, email: str, password: str) -> Account | None:
    """Insert a whitelisted admin. None if an account with the email already exists."""
    account = Account(
        email=normalize_email(email),
        password_hash=hash_password(password),
        email_verified=True,
        role=Role.ADMIN,
        status=AccountStatus.ACTIVE,
    )
    return await _insert_account(db, account)


async def _insert_account(db: AsyncSession, account: Account) -> Account | None:
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return None
    await db.refresh(account)
    return account


async def set_password(db: AsyncSession, account: Account, password: str) -> Account:
    """Store a new password hash and invalidate outstanding reset tokens."""
    account.password_hash = hash_password(password)
    account.password_version = (account.password_version or 0) + 1
    await db.commit()
    return account


async def touch_last_login(db: AsyncSession, account: Account, now: datetime | None = None) -> None:
    account.last_login_at = now or utcnow()
    await db.commit()


def account_projection(account: Account) -> dict:
    """Safe view of an account; never includes the password hash."""
    return {
        "id": account.id,
        "email": account.email,
        "full_name": account.full_name,
        "id_number": account.id_number,
        "phone": account.phone,
        "role": account.role.value,
        "status": account.status.value,
        "email_verified": account.email_verified,
    }
