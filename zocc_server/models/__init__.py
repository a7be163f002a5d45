# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from zocc_server.models.base import Base
from zocc_server.models.account import Account, AccountStatus, Role
from zocc_server.models.one_time_code import CodePurpose, OneTimeCode

__all__ = [
    "Base",
    "Account",
    "AccountStatus",
    "Role",
    "CodePurpose",
    "OneTimeCode",
]
