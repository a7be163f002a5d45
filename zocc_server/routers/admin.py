# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin API - account approvals and student password resets. Requires admin account."""

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from zocc_server.api.errors import http_error
from zocc_server.api.schemas import (
    AccountResponse,
    MessageResponse,
    PendingAccountResponse,
    RejectAccountRequest,
)
from zocc_server.auth import get_current_account_id
from zocc_server.database import get_db
from zocc_server.services import accounts, password_reset, registration
from zocc_server.services.results import AuthFailure, FailureKind

router = APIRouter(prefix="/admin", tags=["admin"])

_ADMIN_STATUS = {FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND}


async def require_admin(
    account_id: int = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Dependency: require admin account."""
    account = await accounts.get_account(db, account_id)
    if not account or not account.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return account_id


@router.get("/pending-accounts", response_model=list[PendingAccountResponse])
async def list_pending_accounts(
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[PendingAccountResponse]:
    """Accounts registered without OTP that wait for review, newest first."""
    pending = await registration.list_pending_accounts(db)
    return [PendingAccountResponse.model_validate(a) for a in pending]


@router.post("/approve-account/{account_id}", response_model=AccountResponse)
async def approve_account(
    account_id: int,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    result = await registration.approve_account(db, account_id)
    if isinstance(result, AuthFailure):
        raise http_error(result, _ADMIN_STATUS)
    return AccountResponse.model_validate(result)


@router.post("/reject-account/{account_id}", response_model=AccountResponse)
async def reject_account(
    account_id: int,
    body: RejectAccountRequest | None = Body(default=None),
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> AccountResponse:
    reason = body.reason if body else None
    result = await registration.reject_account(db, account_id, reason)
    if isinstance(result, AuthFailure):
        raise http_error(result, _ADMIN_STATUS)
    return AccountResponse.model_validate(result)


@router.post("/students/{account_id}/send-password-reset", response_model=MessageResponse)
async def send_password_reset_to_student(
    account_id: int,
    _admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Email a password reset code to the student. Admin only."""
    account = await accounts.get_account(db, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    failure = await password_reset.send_reset_code(db, account)
    if failure is not None:
        raise http_error(failure, {FailureKind.NOT_SET_UP: status.HTTP_409_CONFLICT})
    return MessageResponse(message="Password reset code sent.")
