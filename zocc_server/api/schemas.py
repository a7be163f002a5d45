# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from zocc_server.models import AccountStatus, Role


# Verification
class OtpRequest(BaseModel):
    email: str


class OtpVerifyRequest(BaseModel):
    email: str
    otp: str


class OtpIssuedResponse(BaseModel):
    success: bool = True
    message: str = "OTP sent to your email"
    expires_in: int


class VerificationStatusResponse(BaseModel):
    email: str
    state: str


# Registration
class RegisterRequest(BaseModel):
    email: str
    id_number: str
    full_name: str
    password: str


class PendingRegisterRequest(RegisterRequest):
    phone: str | None = None


# Login
class LoginRequest(BaseModel):
    email: str
    password: str


class AccountResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    id_number: str | None = None
    phone: str | None = None
    role: Role
    status: AccountStatus
    email_verified: bool

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


# Password reset
class ForgotPasswordRequest(BaseModel):
    email_or_id: str


class VerifyResetCodeRequest(BaseModel):
    email_or_id: str
    otp: str


class ResetTokenResponse(BaseModel):
    reset_token: str
    token_type: str = "reset"


class ResetPasswordRequest(BaseModel):
    reset_token: str
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Admin
class RejectAccountRequest(BaseModel):
    reason: str | None = None


class PendingAccountResponse(AccountResponse):
    created_at: datetime | None = None
