# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Login: credential check, verification/approval gates, admin whitelist bootstrap."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.auth import issue_session_token, verify_password
from zocc_server.config import settings
from zocc_server.models import AccountStatus, Role
from zocc_server.services import accounts
from zocc_server.services.results import AuthFailure, FailureKind, LoginResult

logger = logging.getLogger(__name__)


def is_whitelisted_admin(email: str, whitelist: frozenset[str] | None = None) -> bool:
    if whitelist is None:
        whitelist = settings.admin_whitelist
    return accounts.normalize_email(email) in whitelist


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    whitelist: frozenset[str] | None = None,
) -> LoginResult | AuthFailure:
    """Authenticate by email and password and issue a session token.

    Existence and credential presence are checked before the password; the
    verification and approval gates only apply after a correct password.
    """
    email = accounts.normalize_email(email)
    password = password or ""
    if not email or not password:
        return AuthFailure(FailureKind.INVALID_INPUT, "Email and password are required")
    is_admin_email = is_whitelisted_admin(email, whitelist)

    account = await accounts.get_account_by_email(db, email)
    if account is None and is_admin_email:
        account = await accounts.create_admin_account(db, email, password)
        if account is None:
            # Lost the insert to a concurrent first login; check against the stored password
            account = await accounts.get_account_by_email(db, email)
        else:
            logger.info("Bootstrapped admin account %s for %s", account.id, email)

    if account is None:
        logger.info("Login refused for %s: %s", email, FailureKind.NO_ACCOUNT.value)
        return AuthFailure(FailureKind.NO_ACCOUNT, "Invalid email or password")
    if not account.password_hash:
        logger.info("Login refused for %s: %s", email, FailureKind.NOT_SET_UP.value)
        return AuthFailure(FailureKind.NOT_SET_UP, "Invalid email or password")
    if not verify_password(password, account.password_hash):
        logger.info("Login refused for %s: %s", email, FailureKind.BAD_CREDENTIALS.value)
        return AuthFailure(FailureKind.BAD_CREDENTIALS, "Invalid email or password")

    if is_admin_email and (account.role != Role.ADMIN or account.status != AccountStatus.ACTIVE):
        account.role = Role.ADMIN
        account.status = AccountStatus.ACTIVE
        await db.commit()
        logger.info("Promoted whitelisted account %s to admin", account.id)

    if not is_admin_email:
        if not account.counts_as_verified:
            logger.info("Login refused for %s: %s", email, FailureKind.UNVERIFIED.value)
            return AuthFailure(FailureKind.UNVERIFIED, "Please verify your email before logging in")
        if account.status != AccountStatus.ACTIVE:
            logger.info("Login refused for %s: %s", email, FailureKind.NOT_APPROVED.value)
            return AuthFailure(
                FailureKind.NOT_APPROVED,
                "Your account is awaiting admin approval"
                if account.status == AccountStatus.PENDING_APPROVAL
                else "Your account registration was rejected",
            )

    await accounts.touch_last_login(db, account)
    return LoginResult(token=issue_session_token(account), account=account)
