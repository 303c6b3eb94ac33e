"""
Demo data service — known users and a short transaction history.

!! NOT FOR PRODUCTION !!
Creates users with known passwords. Used by demo/seed.py and, when
SEED_DEMO_DATA=true, at application startup.

Seeding is idempotent: users are created only if their email is not
registered yet, and the sample history is only added while the demo
customer has fewer than four transactions.

Login credentials after seeding:
    ┌──────────────────┬──────────┬───────┐
    │ Email            │ Password │ Role  │
    ├──────────────────┼──────────┼───────┤
    │ admin@demo.com   │ password │ ADMIN │
    │ user@demo.com    │ password │ USER  │
    └──────────────────┴──────────┴───────┘
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.models.account import Account
from bank_approvals.models.transaction import Transaction, TransactionStatus
from bank_approvals.models.user import User, UserRole
from bank_approvals.services import account_service, auth_service
from bank_approvals.services.transaction_service import generate_transaction_id

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password"

ADMIN = {"email": "admin@demo.com", "username": "admin", "balance_cents": 0}
CUSTOMER = {"email": "user@demo.com", "username": "demouser", "balance_cents": 1000_00}

# (type, amount_cents, description, recipient, days_ago, admin comment)
# Entries with a comment are approved; the last one is left pending for the
# approval queue. Approved entries add up to the seeded balance.
HISTORY = [
    ("deposit", 500_00, "Initial deposit", None, 7, "Welcome bonus"),
    ("transfer", 200_00, "Transfer to friend",
     {"account_number": "9876543210", "name": "John Doe"}, 5, "Verified transfer"),
    ("withdrawal", 100_00, "ATM withdrawal", None, 3, "ATM withdrawal approved"),
    ("deposit", 300_00, "Salary deposit", None, 0, None),
]


async def _get_or_create(
    db: AsyncSession,
    profile: dict,
    role: UserRole,
) -> tuple[User, Account]:
    result = await db.execute(select(User).where(User.email == profile["email"]))
    user = result.scalar_one_or_none()

    if user is not None:
        account = await account_service.get_account_for_user(db, user.id)
        return user, account

    user, account = await auth_service.create_user(
        db,
        email=profile["email"],
        password=DEMO_PASSWORD,
        username=profile["username"],
        role=role,
        balance_cents=profile["balance_cents"],
    )
    logger.info("Demo %s account created: %s", role.value, profile["email"])
    return user, account


async def seed_demo_data(db: AsyncSession) -> int:
    """
    Create the demo admin, the demo customer and the sample history.

    Commits. Returns the number of transactions created.
    """
    admin, _ = await _get_or_create(db, ADMIN, UserRole.ADMIN)
    _, account = await _get_or_create(db, CUSTOMER, UserRole.USER)

    existing = (
        await db.execute(
            select(func.count(Transaction.id)).where(Transaction.account_id == account.id)
        )
    ).scalar_one()

    if existing >= 4:
        logger.info("Demo transactions already exist (%d found), skipping", existing)
        await db.commit()
        return 0

    now = datetime.now(timezone.utc)
    # Walk forward from the opening balance that ends at the seeded one
    running = account.balance_cents - sum(
        amount if txn_type == "deposit" else -amount
        for txn_type, amount, _, _, _, comment in HISTORY
        if comment is not None
    )

    for txn_type, amount, description, recipient, days_ago, comment in HISTORY:
        txn = Transaction(
            transaction_id=generate_transaction_id(),
            account_id=account.id,
            type=txn_type,
            amount_cents=amount,
            description=description,
            recipient_account_number=recipient["account_number"] if recipient else None,
            recipient_name=recipient["name"] if recipient else None,
            created_at=now - timedelta(days=days_ago),
            updated_at=now - timedelta(days=days_ago),
        )

        if comment is None:
            txn.status = TransactionStatus.PENDING.value
        else:
            running += amount if txn_type == "deposit" else -amount
            txn.status = TransactionStatus.APPROVED.value
            txn.admin_id = admin.id
            txn.action_date = now - timedelta(days=days_ago)
            txn.admin_comment = comment
            txn.balance_after_cents = running

        db.add(txn)
        await db.flush()
        logger.info("Created demo transaction: %s - %d cents", txn_type, amount)

    await db.commit()
    logger.info("Demo initialization complete")
    return len(HISTORY)
