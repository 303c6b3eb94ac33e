"""
Account service — the Account Store.

This module handles:
  - Account creation (with unique account number generation)
  - Account lookup (by id, by owner, by account number)
  - Guarded balance writes used by the approval engine
  - Freeze / unfreeze (admin action)
  - The admin account list

Balance writes:
  Nothing outside this module assigns balance_cents directly. Debits go
  through swap_balance(), a compare-and-swap conditioned on the balance the
  caller read, so a concurrent writer makes the swap miss instead of being
  silently overwritten. Credits that cannot fail (deposits to a transfer
  recipient) use credit_balance(), an in-database increment.

Role enforcement:
  An account's role is its owner's User.role. Admin accounts are never
  frozen; set_frozen() rejects them with ForbiddenError.
"""

import logging
import math
import random
import string
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.exceptions import AccountNotFoundError, ForbiddenError
from bank_approvals.models.account import MAX_BALANCE_CENTS, Account
from bank_approvals.models.user import User, UserRole
from bank_approvals.notifications import NotificationDispatcher, NotificationEvent

logger = logging.getLogger(__name__)


def _generate_account_number() -> str:
    """Generate a random 10-digit account number."""
    return "".join(random.choices(string.digits, k=10))


async def create_account(
    db: AsyncSession,
    user_id: uuid.UUID,
    holder_name: str,
    balance_cents: int = 0,
) -> Account:
    """
    Create the bank account for a user.

    Generates a unique account number. The balance starts at zero unless a
    seeded balance is given (demo data only).
    """
    # Retry on collision (extremely unlikely with 10 random digits)
    for _ in range(10):
        account_number = _generate_account_number()
        existing = await db.execute(
            select(Account).where(Account.account_number == account_number)
        )
        if existing.scalar_one_or_none() is None:
            break
    else:
        raise RuntimeError("Failed to generate a unique account number")

    account = Account(
        user_id=user_id,
        account_number=account_number,
        holder_name=holder_name,
        balance_cents=balance_cents,
    )
    db.add(account)
    await db.flush()
    return account


async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Get an account by id.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def get_account_for_user(db: AsyncSession, user_id: uuid.UUID) -> Account | None:
    result = await db.execute(select(Account).where(Account.user_id == user_id))
    return result.scalar_one_or_none()


async def get_account_by_number(db: AsyncSession, account_number: str) -> Account | None:
    """Resolve a transfer address. Returns None when no account has that number."""
    result = await db.execute(
        select(Account)
        .where(Account.account_number == account_number)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def lock_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Read the account's current row and lock it for the rest of the DB transaction.

    populate_existing forces a fresh read even if the session already holds
    this account, so the caller never decides on a stale balance or frozen flag.
    with_for_update() is a no-op on SQLite and a row lock on PostgreSQL.
    """
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def swap_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    expected_cents: int,
    new_cents: int,
) -> bool:
    """
    Compare-and-swap the balance.

    Writes new_cents only if the stored balance still equals expected_cents.
    Returns True if the swap happened, False if another writer got there first.
    """
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .where(Account.balance_cents == expected_cents)
        .values(balance_cents=new_cents, updated_at=datetime.now(timezone.utc))
    )
    return result.rowcount == 1


async def credit_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount_cents: int,
) -> bool:
    """
    Add amount_cents to the balance with an in-database increment.

    Returns False, changing nothing, if the result would not fit the column.
    """
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .where(Account.balance_cents <= MAX_BALANCE_CENTS - amount_cents)
        .values(
            balance_cents=Account.balance_cents + amount_cents,
            updated_at=datetime.now(timezone.utc),
        )
    )
    return result.rowcount == 1


async def set_frozen(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    account_id: uuid.UUID,
    freeze: bool,
) -> Account:
    """
    Freeze or unfreeze a customer account.

    Freezing blocks new transactions from the account and makes approval of
    its pending transactions fail; it does not decline them.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        ForbiddenError: If the account belongs to an admin.
    """
    result = await db.execute(
        select(Account, User.role)
        .join(User, User.id == Account.user_id)
        .where(Account.id == account_id)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()

    if row is None:
        raise AccountNotFoundError(account_id)

    account, role = row
    if role == UserRole.ADMIN:
        raise ForbiddenError("Cannot freeze admin accounts")

    account.is_frozen = freeze
    await db.commit()

    logger.info("Account %s %s", account.account_number, "frozen" if freeze else "unfrozen")

    dispatcher.notify_account(
        account.id,
        NotificationEvent.ACCOUNT_STATUS_CHANGE,
        {
            "is_frozen": freeze,
            "message": (
                "Your account has been frozen" if freeze
                else "Your account has been unfrozen"
            ),
        },
    )
    return account


# ---------------------------------------------------------------------------
# Admin read-only functions
# ---------------------------------------------------------------------------

async def admin_list_accounts(
    db: AsyncSession,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """
    [ADMIN ONLY] List customer accounts, newest first.

    `search` matches username, email or account number, case-insensitively.
    """
    query = (
        select(Account, User)
        .join(User, User.id == Account.user_id)
        .where(User.role == UserRole.USER)
    )

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                Account.account_number.ilike(pattern),
            )
        )

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()

    result = await db.execute(
        query.order_by(Account.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )

    accounts = [
        {
            "id": account.id,
            "user_id": account.user_id,
            "account_number": account.account_number,
            "holder_name": account.holder_name,
            "balance_cents": account.balance_cents,
            "is_frozen": account.is_frozen,
            "is_active": account.is_active,
            "created_at": account.created_at,
            "username": user.username,
            "email": user.email,
            "role": user.role.value,
        }
        for account, user in result.all()
    ]

    return {
        "accounts": accounts,
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
    }
