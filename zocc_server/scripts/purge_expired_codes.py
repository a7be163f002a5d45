#!/usr/bin/env python3
# Copyright (C) 2024 ZeroOne Coding Club Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Delete expired one-time codes. Run: python -m zocc_server.scripts.purge_expired_codes"""

import asyncio

from zocc_server.database import async_session_maker, init_db
from zocc_server.services.otp import purge_expired_codes


async def main():
    await init_db()
    async with async_session_maker() as session:
        removed = await purge_expired_codes(session)
    print(f"Removed {removed} expired code(s).")


if __name__ == "__main__":
    asyncio.run(main())
