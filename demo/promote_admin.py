#!/usr/bin/env python3
"""
Promote a registered user to ADMIN. Run on the server.

There is no admin-promotion endpoint: admin provisioning is an operator
action, not self-service. Signup always creates a customer.

Usage:
    python demo/promote_admin.py someone@example.com
"""

import argparse
import asyncio

from sqlalchemy import update

from bank_approvals.database import AsyncSessionLocal, engine
from bank_approvals.models.user import User, UserRole


async def promote(email: str) -> int:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(User)
            .where(User.email == email)
            .values(role=UserRole.ADMIN)
        )
        await session.commit()
    await engine.dispose()
    return result.rowcount


def main() -> None:
    parser = argparse.ArgumentParser(description="Promote a user to ADMIN")
    parser.add_argument("email")
    args = parser.parse_args()

    rows = asyncio.run(promote(args.email))
    print(f"Rows updated: {rows}")


if __name__ == "__main__":
    main()
