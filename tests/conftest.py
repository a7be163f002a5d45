# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Each test gets a fresh in-memory SQLite database."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from zocc_server.config import settings
from zocc_server.database import get_db
from zocc_server.main import app
from zocc_server.models import Base
from zocc_server.rate_limit import reset_rate_limits
from zocc_server.services import email as mailer
from zocc_server.services import registration, verification
from zocc_server.services.results import AuthFailure, IssuedCode, Registration

ADMIN_EMAIL = "admin@zocc.test"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings, "admin_emails", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "student_email_domain", "kluniversity.in")
    monkeypatch.setattr(settings, "jwt_secret", "test-secret")


@pytest.fixture
async def session_maker():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def outbox(monkeypatch):
    """Captures dispatched codes as (email, code, purpose) instead of mailing them."""
    sent = []

    async def capture(to, code, purpose):
        sent.append((to, code, purpose))
        return True

    monkeypatch.setattr(mailer, "dispatch_code", capture)
    return sent


@pytest.fixture
def verify_email(db, outbox):
    async def _verify(email):
        issued = await verification.request_email_verification(db, email)
        assert isinstance(issued, IssuedCode)
        account = await verification.confirm_email(db, email, outbox[-1][1])
        assert not isinstance(account, AuthFailure)
        return account

    return _verify


@pytest.fixture
def registered_student(db, verify_email):
    async def _register(id_number="2300030001", password="secret123", full_name="Asha Rao"):
        email = f"{id_number}@kluniversity.in"
        await verify_email(email)
        result = await registration.register(db, email, id_number, full_name, password)
        assert isinstance(result, Registration)
        return result.account

    return _register


@pytest.fixture
async def client(session_maker, outbox):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    reset_rate_limits()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
