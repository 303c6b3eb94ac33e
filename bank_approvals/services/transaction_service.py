"""
Transaction service — intake, cancellation, and ledger reads.

This module handles:
  - Creating pending transactions from customer requests (intake)
  - Cancelling a pending transaction by its owner
  - Listing and reading transactions (owner-scoped and admin-wide)
  - Admin dashboard counters

Intake is a point-in-time check, not a reservation:
  The balance check at creation time reads the balance as it is now and
  holds nothing back. Two withdrawals that each fit the balance can both be
  pending; the approval engine re-checks each one against the balance at
  its own approval time, so the second approval fails if the first one
  already used the money. Admins arbitrate by approval order.

Transaction ids:
  transaction_id is "TXN" + epoch milliseconds + six random digits. The
  column is UNIQUE, so a collision is rejected by the database; the insert
  runs inside a SAVEPOINT and is retried with a fresh id.

Cancellation vs. approval:
  Cancellation deletes the row with a guarded DELETE (status must still be
  pending) while holding the owner account's lock, the same lock the
  approval engine holds. Whichever transition runs first wins; the other
  sees NotPendingError / AlreadyProcessedError.
"""

import logging
import math
import random
import time
import uuid

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.config import settings
from bank_approvals.exceptions import (
    AccountFrozenError,
    InsufficientFundsError,
    NotPendingError,
    SelfTransferError,
    TransactionNotFoundError,
    ValidationError,
)
from bank_approvals.models.account import Account
from bank_approvals.models.transaction import (
    DEBIT_TYPES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from bank_approvals.models.user import User, UserRole
from bank_approvals.notifications import NotificationDispatcher, NotificationEvent
from bank_approvals.schemas.transaction import TransactionResponse
from bank_approvals.services import account_service
from bank_approvals.services.account_locks import account_locks

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = frozenset(t.value for t in TransactionType)


def generate_transaction_id() -> str:
    """Human-readable, unique with overwhelming probability."""
    millis = int(time.time() * 1000)
    suffix = random.randint(0, 999_999)
    return f"{settings.TRANSACTION_ID_PREFIX}{millis}{suffix:06d}"


def serialize_transaction(txn: Transaction) -> dict:
    """JSON-ready representation used in notification payloads."""
    return TransactionResponse.model_validate(txn).model_dump(mode="json")


def _validate_request(
    txn_type: str,
    amount_cents: int,
    recipient: dict | None,
) -> None:
    if txn_type not in TRANSACTION_TYPES:
        raise ValidationError(
            "Transaction type must be one of: deposit, withdrawal, transfer"
        )

    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise ValidationError("Amount must be greater than 0")

    if amount_cents > settings.MAX_AMOUNT_CENTS:
        raise ValidationError(
            f"Amount must not exceed {settings.MAX_AMOUNT_CENTS} cents"
        )

    if txn_type == TransactionType.TRANSFER.value:
        if not recipient or not recipient.get("account_number") or not recipient.get("name"):
            raise ValidationError("Recipient details are required for transfers")


async def _insert_pending(
    db: AsyncSession,
    account_id: uuid.UUID,
    txn_type: str,
    amount_cents: int,
    description: str | None,
    recipient: dict | None,
) -> Transaction:
    is_transfer = txn_type == TransactionType.TRANSFER.value

    for _ in range(settings.TRANSACTION_ID_ATTEMPTS):
        txn = Transaction(
            transaction_id=generate_transaction_id(),
            account_id=account_id,
            type=txn_type,
            amount_cents=amount_cents,
            description=description,
            recipient_account_number=recipient["account_number"] if is_transfer else None,
            recipient_name=recipient["name"] if is_transfer else None,
            status=TransactionStatus.PENDING.value,
        )
        try:
            async with db.begin_nested():
                db.add(txn)
                await db.flush()
        except IntegrityError:
            logger.warning("Transaction id %s already taken, regenerating", txn.transaction_id)
            continue
        return txn

    raise RuntimeError("Failed to generate a unique transaction id")


async def create_transaction(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    account_id: uuid.UUID,
    txn_type: str,
    amount_cents: int,
    description: str | None = None,
    recipient: dict | None = None,
) -> Transaction:
    """
    Validate a customer request and record it as a pending transaction.

    Args:
        db: Database session.
        dispatcher: Notification dispatcher (admins get "newTransaction").
        account_id: The owner's account (always the authenticated caller's).
        txn_type: "deposit", "withdrawal", or "transfer".
        amount_cents: Positive integer amount in cents.
        description: Optional memo.
        recipient: {"account_number", "name"}, required for transfers.

    Returns:
        The created pending Transaction.

    Raises:
        ValidationError: Bad amount, type, or missing recipient fields.
        AccountFrozenError: The owner account is frozen.
        InsufficientFundsError: Withdrawal/transfer larger than the balance now.
        SelfTransferError: The recipient account number is the owner's own.
    """
    _validate_request(txn_type, amount_cents, recipient)

    account = await account_service.get_account(db, account_id)

    if account.is_frozen:
        raise AccountFrozenError(account.id)

    if txn_type in DEBIT_TYPES and amount_cents > account.balance_cents:
        raise InsufficientFundsError(
            account_id=account.id,
            requested_cents=amount_cents,
            available_cents=account.balance_cents,
        )

    if txn_type == TransactionType.TRANSFER.value:
        # Only internal accounts can be detected; unknown numbers are allowed
        # through and resolved again at approval time
        recipient_account = await account_service.get_account_by_number(
            db, recipient["account_number"]
        )
        if recipient_account is not None and recipient_account.id == account.id:
            raise SelfTransferError()

    txn = await _insert_pending(
        db, account.id, txn_type, amount_cents, description, recipient
    )
    await db.commit()

    logger.info(
        "Created %s %s for %d cents on account %s",
        txn.type, txn.transaction_id, txn.amount_cents, account.account_number,
    )

    dispatcher.notify_admins(
        NotificationEvent.NEW_TRANSACTION,
        {
            "transaction": serialize_transaction(txn),
            "account": {
                "account_number": account.account_number,
                "holder_name": account.holder_name,
            },
        },
    )
    return txn


async def cancel_transaction(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    transaction_id: uuid.UUID,
    account_id: uuid.UUID,
) -> None:
    """
    Cancel (delete) a pending transaction owned by account_id.

    Balances are never touched: a pending transaction has not moved money.

    Raises:
        TransactionNotFoundError: Missing, or owned by another account.
        NotPendingError: Already approved or declined (including losing a
                         race against an admin).
    """
    async with account_locks.hold(account_id):
        txn = await get_transaction(db, transaction_id, account_id=account_id)
        if not txn.is_pending:
            raise NotPendingError(transaction_id)
        reference = txn.transaction_id

        try:
            result = await db.execute(
                delete(Transaction)
                .where(Transaction.id == transaction_id)
                .where(Transaction.account_id == account_id)
                .where(Transaction.status == TransactionStatus.PENDING.value)
            )
            if result.rowcount != 1:
                raise NotPendingError(transaction_id)
        except Exception:
            await db.rollback()
            raise

        await db.commit()

    logger.info("Cancelled %s on account %s", reference, account_id)

    dispatcher.notify_admins(
        NotificationEvent.TRANSACTION_CANCELLED,
        {
            "transaction_id": transaction_id,
            "reference": reference,
            "account_id": account_id,
        },
    )


async def get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    account_id: uuid.UUID | None = None,
) -> Transaction:
    """
    Get a single transaction by ID.

    When account_id is given the read is ownership-scoped: another account's
    transaction looks exactly like a missing one.

    Raises:
        TransactionNotFoundError: If no visible transaction has that id.
    """
    query = (
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    if account_id is not None:
        query = query.where(Transaction.account_id == account_id)

    result = await db.execute(query)
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(transaction_id)

    return txn


async def list_transactions(
    db: AsyncSession,
    account_id: uuid.UUID | None = None,
    status_filter: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> dict:
    """
    List transactions newest first, one page at a time.

    Members always pass their own account_id; admins may omit it to see the
    whole ledger.

    Returns:
        {"transactions", "total", "total_pages", "current_page"}
    """
    limit = limit or settings.DEFAULT_PAGE_SIZE

    filters = []
    if account_id is not None:
        filters.append(Transaction.account_id == account_id)
    if status_filter:
        filters.append(Transaction.status == status_filter)

    total = (
        await db.execute(select(func.count(Transaction.id)).where(*filters))
    ).scalar_one()

    result = await db.execute(
        select(Transaction)
        .where(*filters)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )

    return {
        "transactions": list(result.scalars().all()),
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
    }


# ---------------------------------------------------------------------------
# Admin read-only functions
# ---------------------------------------------------------------------------

async def admin_dashboard_stats(db: AsyncSession) -> dict:
    """[ADMIN ONLY] Counters and the five most recent transactions."""
    total_users = (
        await db.execute(
            select(func.count(User.id)).where(User.role == UserRole.USER)
        )
    ).scalar_one()

    pending_transactions = (
        await db.execute(
            select(func.count(Transaction.id))
            .where(Transaction.status == TransactionStatus.PENDING.value)
        )
    ).scalar_one()

    total_transactions = (
        await db.execute(select(func.count(Transaction.id)))
    ).scalar_one()

    frozen_accounts = (
        await db.execute(
            select(func.count(Account.id))
            .join(User, User.id == Account.user_id)
            .where(User.role == UserRole.USER)
            .where(Account.is_frozen.is_(True))
        )
    ).scalar_one()

    recent = await db.execute(
        select(Transaction).order_by(Transaction.created_at.desc()).limit(5)
    )

    return {
        "total_users": total_users,
        "pending_transactions": pending_transactions,
        "total_transactions": total_transactions,
        "frozen_accounts": frozen_accounts,
        "recent_transactions": list(recent.scalars().all()),
    }
