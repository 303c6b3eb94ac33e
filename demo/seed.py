#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords and a short transaction
history. It is intended ONLY for local demos and frontend development.

Unlike the API, this script talks to the database directly (DATABASE_URL
from the environment / .env), so the server does not need to be running.
Running it twice is safe; existing demo data is left alone.

Usage:
    python demo/seed.py

    # Drop and recreate all tables, then seed:
    python demo/seed.py --reset

Login credentials after seeding:
    ┌──────────────────┬──────────┬───────┐
    │ Email            │ Password │ Role  │
    ├──────────────────┼──────────┼───────┤
    │ admin@demo.com   │ password │ ADMIN │
    │ user@demo.com    │ password │ USER  │
    └──────────────────┴──────────┴───────┘
"""

import argparse
import asyncio

from bank_approvals.config import settings
from bank_approvals.database import AsyncSessionLocal, Base, engine
from bank_approvals.logging_config import setup_logging
from bank_approvals.services.demo_service import ADMIN, CUSTOMER, DEMO_PASSWORD, seed_demo_data
import bank_approvals.models  # noqa: F401  (registers tables on Base.metadata)


def log(msg: str) -> None:
    print(f"  {msg}")


async def seed(reset: bool) -> None:
    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with engine.begin() as conn:
        if reset:
            log(f"Dropping all tables in {settings.DATABASE_URL}")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        created = await seed_demo_data(session)

    await engine.dispose()

    log(f"{created} demo transactions created")

    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<20s} {'Password':<10s} {'Role'}")
    print(f"  {'─' * 20} {'─' * 10} {'─' * 6}")
    print(f"  {ADMIN['email']:<20s} {DEMO_PASSWORD:<10s} ADMIN")
    print(f"  {CUSTOMER['email']:<20s} {DEMO_PASSWORD:<10s} USER")
    print()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates the demo admin, the demo customer, and sample transactions.",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Drop and recreate all tables before seeding",
    )
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    asyncio.run(seed(args.reset))


if __name__ == "__main__":
    main()
