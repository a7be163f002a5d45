# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email verification: UNVERIFIED -> CODE_LIVE -> VERIFIED."""

import enum
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.models import Account, CodePurpose
from zocc_server.services import accounts, otp
from zocc_server.services import email as mailer
from zocc_server.services.results import AuthFailure, FailureKind, IssuedCode

logger = logging.getLogger(__name__)


class VerificationState(str, enum.Enum):
    UNVERIFIED = "UNVERIFIED"
    CODE_LIVE = "CODE_LIVE"
    VERIFIED = "VERIFIED"


async def verification_state(db: AsyncSession, email: str) -> VerificationState:
    email = accounts.normalize_email(email)
    account = await accounts.get_account_by_email(db, email)
    if account is not None and account.email_verified:
        return VerificationState.VERIFIED
    if await otp.live_code(db, email, CodePurpose.EMAIL_VERIFICATION) is not None:
        return VerificationState.CODE_LIVE
    return VerificationState.UNVERIFIED


async def request_email_verification(db: AsyncSession, email: str) -> IssuedCode | AuthFailure:
    """Issue a verification code and mail it.

    An undelivered code is revoked so it does not hold the busy slot until expiry.
    """
    email = accounts.normalize_email(email)
    if not accounts.is_valid_email(email):
        return AuthFailure(FailureKind.INVALID_INPUT, "Valid email required")

    issued = await otp.issue_code(db, email, CodePurpose.EMAIL_VERIFICATION)
    if isinstance(issued, AuthFailure):
        return issued

    if not await mailer.dispatch_code(email, issued.code, CodePurpose.EMAIL_VERIFICATION):
        await otp.revoke_code(db, email, CodePurpose.EMAIL_VERIFICATION)
        return AuthFailure(FailureKind.DELIVERY_FAILED, "Failed to send verification email. Please try again.")
    return issued


async def confirm_email(db: AsyncSession, email: str, code: str) -> Account | AuthFailure:
    """Check the code and record the email as verified (creating a shell account if needed)."""
    email = accounts.normalize_email(email)
    if not email or not code:
        return AuthFailure(FailureKind.INVALID_INPUT, "Email and OTP required")

    check = await otp.verify_code(db, email, CodePurpose.EMAIL_VERIFICATION, code)
    if check != otp.CodeCheck.OK:
        logger.info("Email verification failed for %s: %s", email, check.value)
        return otp.code_failure(check)

    account = await accounts.mark_email_verified(db, email)
    logger.info("Email verified: %s (account %s)", email, account.id)
    return account
