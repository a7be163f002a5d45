# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.api.errors import http_error
from zocc_server.api.schemas import (
    AccountResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    OtpIssuedResponse,
    OtpRequest,
    OtpVerifyRequest,
    PendingRegisterRequest,
    RegisterRequest,
    ResetPasswordRequest,
    ResetTokenResponse,
    Token,
    VerificationStatusResponse,
    VerifyResetCodeRequest,
)
from zocc_server.auth import get_current_account_id
from zocc_server.config import settings
from zocc_server.database import get_db
from zocc_server.rate_limit import rate_limit_auth_dep
from zocc_server.services import accounts, login as login_service, password_reset, registration, verification
from zocc_server.services.results import AuthFailure, FailureKind

router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(rate_limit_auth_dep)])


@router.post("/request-otp", response_model=OtpIssuedResponse)
async def request_otp(
    data: OtpRequest,
    db: AsyncSession = Depends(get_db),
) -> OtpIssuedResponse:
    """Send an email verification code. Refused while a previous code is still live."""
    result = await verification.request_email_verification(db, data.email)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return OtpIssuedResponse(expires_in=settings.otp_ttl_seconds)


@router.post("/verify-otp", response_model=MessageResponse)
async def verify_otp(
    data: OtpVerifyRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Verify email with one-time code."""
    result = await verification.confirm_email(db, data.email, data.otp)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return MessageResponse(message="Email verified successfully")


@router.get("/verification-status", response_model=VerificationStatusResponse)
async def verification_status(
    email: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> VerificationStatusResponse:
    state = await verification.verification_state(db, email)
    return VerificationStatusResponse(email=accounts.normalize_email(email), state=state.value)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Complete registration after OTP verification. Returns a session token."""
    result = await registration.register(db, data.email, data.id_number, data.full_name, data.password)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return Token(access_token=result.token, account=AccountResponse.model_validate(result.account))


@router.post("/register-pending", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def register_pending(
    data: PendingRegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Register without OTP. The account waits for admin approval before it can log in."""
    result = await registration.register_pending(
        db, data.email, data.id_number, data.full_name, data.password, data.phone
    )
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return AccountResponse.model_validate(result)


@router.post("/login", response_model=Token)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """Authenticate and return JWT."""
    result = await login_service.login(db, data.email, data.password)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return Token(access_token=result.token, account=AccountResponse.model_validate(result.account))


@router.get("/me", response_model=AccountResponse)
@router.get("/verify", response_model=AccountResponse)
async def get_me(
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    """Get the account behind the session token."""
    account = await accounts.get_account(db, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse.model_validate(account)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Request a password reset code. Same answer whether or not the account exists."""
    await password_reset.request_reset(db, data.email_or_id)
    return MessageResponse(message="If an account exists, a password reset code has been sent.")


@router.post("/verify-reset-code", response_model=ResetTokenResponse)
async def verify_reset_code(
    data: VerifyResetCodeRequest,
    db: AsyncSession = Depends(get_db),
) -> ResetTokenResponse:
    """Exchange a reset code for a short-lived reset token."""
    result = await password_reset.verify_reset_code(db, data.email_or_id, data.otp)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return ResetTokenResponse(reset_token=result)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Set a new password with a reset token."""
    result = await password_reset.reset_password(db, data.reset_token, data.new_password)
    if isinstance(result, AuthFailure):
        raise http_error(result)
    return MessageResponse(message="Password reset successfully.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    result = await password_reset.change_password(db, account_id, data.current_password, data.new_password)
    if isinstance(result, AuthFailure):
        raise http_error(result, {FailureKind.BAD_CREDENTIALS: status.HTTP_400_BAD_REQUEST})
    return MessageResponse(message="Password changed successfully.")
