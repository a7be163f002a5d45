# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""One-time code model (email verification and password reset)."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from zocc_server.models.base import Base
from zocc_server.models.timestamp import TimestampMixin


class CodePurpose(str, enum.Enum):
    EMAIL_VERIFICATION = "email-verification"
    PASSWORD_RESET = "password-reset"


class OneTimeCode(Base, TimestampMixin):
    """Short-lived numeric code. At most one row per (email, purpose)."""

    __tablename__ = "one_time_codes"
    __table_args__ = (
        UniqueConstraint("email", "purpose", name="uq_one_time_codes_email_purpose"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[CodePurpose] = mapped_column(
        Enum(
            CodePurpose,
            name="code_purpose",
            native_enum=False,
            length=32,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(12), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
