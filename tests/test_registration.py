# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Registration: OTP path, pending path, admin review."""

import pytest

from zocc_server.auth import decode_token, verify_password
from zocc_server.models import Account, AccountStatus, Role
from zocc_server.models.timestamp import as_utc
from zocc_server.services import accounts, registration
from zocc_server.services.results import AuthFailure, FailureKind, Registration

pytestmark = pytest.mark.anyio

ID_NUMBER = "2300030001"
EMAIL = f"{ID_NUMBER}@kluniversity.in"


async def test_register_after_verification(db, verify_email):
    await verify_email(EMAIL)

    result = await registration.register(db, EMAIL, ID_NUMBER, "  Asha Rao ", "secret123")

    assert isinstance(result, Registration)
    account = result.account
    assert account.status == AccountStatus.ACTIVE
    assert account.role == Role.STUDENT
    assert account.full_name == "Asha Rao"
    assert account.id_number == ID_NUMBER
    assert account.password_hash != "secret123"
    assert verify_password("secret123", account.password_hash)
    assert account.last_login_at is not None
    assert decode_token(result.token)["sub"] == str(account.id)


async def test_register_requires_verified_email(db):
    result = await registration.register(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.NOT_VERIFIED
    assert await accounts.get_account_by_email(db, EMAIL) is None


async def test_register_rejects_email_not_derived_from_id(db, verify_email):
    await verify_email(EMAIL)
    result = await registration.register(db, EMAIL, "2300030002", "Asha Rao", "secret123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.INVALID_INPUT

    await verify_email("asha@gmail.com")
    result = await registration.register(db, "asha@gmail.com", ID_NUMBER, "Asha Rao", "secret123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.INVALID_INPUT
    assert (await accounts.get_account_by_email(db, "asha@gmail.com")).password_hash is None


@pytest.mark.parametrize(
    ("id_number", "full_name", "password"),
    [
        ("2300030001", "A", "secret123"),
        ("2300030001", "A" * 101, "secret123"),
        ("23000300", "Asha Rao", "secret123"),
        ("23000300ab", "Asha Rao", "secret123"),
        ("\uff12" * 10, "Asha Rao", "secret123"),
        ("2300030001", "Asha Rao", "12345"),
    ],
)
async def test_register_validates_input(db, verify_email, id_number, full_name, password):
    await verify_email(EMAIL)
    result = await registration.register(db, EMAIL, id_number, full_name, password)
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.INVALID_INPUT
    assert (await accounts.get_account_by_email(db, EMAIL)).password_hash is None


async def test_register_twice_is_rejected(db, registered_student):
    await registered_student()
    result = await registration.register(db, EMAIL, ID_NUMBER, "Someone Else", "other123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ALREADY_REGISTERED


async def test_register_rejects_taken_id_number(db, verify_email):
    db.add(Account(email="moved@kluniversity.in", id_number=ID_NUMBER, email_verified=True))
    await db.commit()
    await verify_email(EMAIL)

    result = await registration.register(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")

    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ID_TAKEN


async def test_completion_is_single_writer(db, verify_email):
    shell = await verify_email(EMAIL)
    first = await accounts.complete_registration(db, shell.id, ID_NUMBER, "Asha Rao", "secret123")
    second = await accounts.complete_registration(db, shell.id, ID_NUMBER, "Other", "other123")
    assert first is not None
    assert second is None
    stored = await accounts.get_account(db, shell.id)
    assert stored.full_name == "Asha Rao"
    assert verify_password("secret123", stored.password_hash)


async def test_register_pending(db, outbox):
    account = await registration.register_pending(
        db, EMAIL, ID_NUMBER, "Asha Rao", "secret123", phone=" 9876543210 "
    )
    assert isinstance(account, Account)
    assert account.status == AccountStatus.PENDING_APPROVAL
    assert account.role == Role.STUDENT
    assert account.email_verified is False
    assert account.phone == "9876543210"
    assert verify_password("secret123", account.password_hash)
    assert outbox == []


async def test_register_pending_conflicts(db, registered_student):
    await registered_student()
    result = await registration.register_pending(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ALREADY_REGISTERED

    bad = await registration.register_pending(db, "x@kluniversity.in", ID_NUMBER, "Asha Rao", "secret123")
    assert isinstance(bad, AuthFailure)
    assert bad.kind == FailureKind.INVALID_INPUT


async def test_approve_and_reject_pending(db):
    first = await registration.register_pending(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")
    second = await registration.register_pending(
        db, "2300030002@kluniversity.in", "2300030002", "Ravi Kumar", "secret123"
    )
    pending = await registration.list_pending_accounts(db)
    assert {a.id for a in pending} == {first.id, second.id}

    approved = await registration.approve_account(db, first.id)
    assert approved.status == AccountStatus.ACTIVE
    assert approved.approved_at is not None
    assert approved.counts_as_verified

    rejected = await registration.reject_account(db, second.id, "  not a club member ")
    assert rejected.status == AccountStatus.REJECTED
    assert rejected.rejection_reason == "not a club member"

    assert await registration.list_pending_accounts(db) == []


async def test_review_actions_are_idempotent(db):
    account = await registration.register_pending(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")
    once = await registration.approve_account(db, account.id)
    approved_at = once.approved_at
    twice = await registration.approve_account(db, account.id)
    assert twice.status == AccountStatus.ACTIVE
    assert as_utc(twice.approved_at) == as_utc(approved_at)

    await registration.reject_account(db, account.id, "first")
    again = await registration.reject_account(db, account.id, "second")
    assert again.status == AccountStatus.REJECTED
    assert again.rejection_reason == "first"


async def test_review_unknown_account(db):
    for action in (registration.approve_account, registration.reject_account):
        result = await action(db, 9999)
        assert isinstance(result, AuthFailure)
        assert result.kind == FailureKind.NOT_FOUND


async def test_admin_cannot_be_rejected(db):
    admin = await accounts.create_admin_account(db, "admin@zocc.test", "adminpass")
    result = await registration.reject_account(db, admin.id)
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.INVALID_INPUT
    assert (await accounts.get_account(db, admin.id)).status == AccountStatus.ACTIVE


async def test_registration_never_creates_admin(db, registered_student):
    account = await registered_student()
    assert account.role == Role.STUDENT
    pending = await registration.register_pending(
        db, "2300030002@kluniversity.in", "2300030002", "Ravi Kumar", "secret123"
    )
    assert pending.role == Role.STUDENT


async def test_pending_rejects_non_ascii_digits(db):
    wide = "２" * 10
    result = await registration.register_pending(db, f"{wide}@kluniversity.in", wide, "Asha Rao", "secret123")
    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.INVALID_INPUT
    assert await accounts.get_account_by_id_number(db, wide) is None


def _stale_once(monkeypatch, name):
    """Make the next lookup through accounts.<name> miss, as if a concurrent writer had not committed yet."""
    real = getattr(accounts, name)
    calls = []

    async def lookup(db, value):
        calls.append(value)
        if len(calls) == 1:
            return None
        return await real(db, value)

    monkeypatch.setattr(accounts, name, lookup)


async def test_register_loses_id_number_race(db, verify_email, monkeypatch):
    db.add(Account(email="moved@kluniversity.in", id_number=ID_NUMBER, email_verified=True))
    await db.commit()
    shell = await verify_email(EMAIL)
    _stale_once(monkeypatch, "get_account_by_id_number")

    result = await registration.register(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")

    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ID_TAKEN
    stored = await accounts.get_account(db, shell.id)
    assert stored.password_hash is None
    assert stored.id_number is None


async def test_pending_loses_email_race(db, registered_student, monkeypatch):
    await registered_student()
    _stale_once(monkeypatch, "get_account_by_email")
    _stale_once(monkeypatch, "get_account_by_id_number")

    result = await registration.register_pending(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")

    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ALREADY_REGISTERED


async def test_pending_loses_id_number_race(db, monkeypatch):
    db.add(Account(email="moved@kluniversity.in", id_number=ID_NUMBER, email_verified=True))
    await db.commit()
    _stale_once(monkeypatch, "get_account_by_id_number")

    result = await registration.register_pending(db, EMAIL, ID_NUMBER, "Asha Rao", "secret123")

    assert isinstance(result, AuthFailure)
    assert result.kind == FailureKind.ID_TAKEN
    assert await accounts.get_account_by_email(db, EMAIL) is None
