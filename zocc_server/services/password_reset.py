# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Password reset: reset code by email, short-lived reset token, password write."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.auth import RESET_PURPOSE, decode_token, issue_reset_token, verify_password
from zocc_server.config import settings
from zocc_server.models import Account, CodePurpose
from zocc_server.services import accounts, otp
from zocc_server.services import email as mailer
from zocc_server.services.results import AuthFailure, FailureKind

logger = logging.getLogger(__name__)


async def send_reset_code(db: AsyncSession, account: Account) -> AuthFailure | None:
    """Issue and mail a reset code to the account's email. Revokes it if mailing fails.

    Only accounts that completed registration have a password to reset.
    """
    if not account.password_hash:
        return AuthFailure(FailureKind.NOT_SET_UP, "Account has not completed registration")
    issued = await otp.issue_code(db, account.email, CodePurpose.PASSWORD_RESET)
    if isinstance(issued, AuthFailure):
        return issued
    if not await mailer.dispatch_code(account.email, issued.code, CodePurpose.PASSWORD_RESET):
        await otp.revoke_code(db, account.email, CodePurpose.PASSWORD_RESET)
        return AuthFailure(FailureKind.DELIVERY_FAILED, "Failed to send password reset email")
    return None


async def request_reset(db: AsyncSession, email_or_id: str) -> None:
    """Start a reset. The outcome is identical whether or not the account exists."""
    account = await accounts.find_account(db, email_or_id)
    if account is None:
        logger.info("Password reset requested for unknown account")
        return
    if not account.password_hash:
        logger.info("Password reset requested for account %s without a password", account.id)
        return
    failure = await send_reset_code(db, account)
    if failure is not None:
        logger.warning("Password reset code not sent to account %s: %s", account.id, failure.kind.value)


async def verify_reset_code(db: AsyncSession, email_or_id: str, code: str) -> str | AuthFailure:
    """Exchange a valid reset code for a reset token."""
    if not code:
        return AuthFailure(FailureKind.INVALID_INPUT, "Code required")
    account = await accounts.find_account(db, email_or_id)
    if account is None or not account.password_hash:
        return otp.code_failure(otp.CodeCheck.NOT_FOUND)
    check = await otp.verify_code(db, account.email, CodePurpose.PASSWORD_RESET, code)
    if check != otp.CodeCheck.OK:
        logger.info("Reset code check failed for account %s: %s", account.id, check.value)
        return otp.code_failure(check)
    return issue_reset_token(account)


async def _store_new_password(db: AsyncSession, account: Account, new_password: str) -> Account | AuthFailure:
    account_id = account.id
    await accounts.set_password(db, account, new_password)
    stored = await accounts.get_account(db, account_id)
    if stored is None or not verify_password(new_password, stored.password_hash):
        logger.error("Password write for account %s did not persist", account_id)
        return AuthFailure(FailureKind.INTERNAL, "Failed to update password. Please try again.")
    return stored


async def reset_password(db: AsyncSession, reset_token: str, new_password: str) -> Account | AuthFailure:
    """Set a new password using a reset token. Each token works once."""
    claims = decode_token(reset_token or "", purpose=RESET_PURPOSE)
    if claims is None:
        return AuthFailure(FailureKind.INVALID_TOKEN, "Invalid or expired reset token")
    account = await accounts.get_account(db, int(claims["sub"]))
    if account is None or not account.password_hash or claims.get("pwv") != account.password_version:
        return AuthFailure(FailureKind.INVALID_TOKEN, "Invalid or expired reset token")
    if len(new_password or "") < settings.password_min_length:
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"Password must be at least {settings.password_min_length} characters",
        )
    result = await _store_new_password(db, account, new_password)
    if isinstance(result, Account):
        logger.info("Password reset for account %s", result.id)
    return result


async def change_password(
    db: AsyncSession,
    account_id: int,
    current_password: str,
    new_password: str,
) -> Account | AuthFailure:
    """Change password for a logged-in account."""
    account = await accounts.get_account(db, account_id)
    if account is None:
        return AuthFailure(FailureKind.NOT_FOUND, "Account not found")
    if not verify_password(current_password or "", account.password_hash):
        return AuthFailure(FailureKind.BAD_CREDENTIALS, "Current password is incorrect")
    if len(new_password or "") < settings.password_min_length:
        return AuthFailure(
            FailureKind.INVALID_INPUT,
            f"Password must be at least {settings.password_min_length} characters",
        )
    return await _store_new_password(db, account, new_password)
