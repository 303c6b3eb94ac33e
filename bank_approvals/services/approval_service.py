"""
Approval engine — the pending → approved/declined state machine.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It applies an admin decision
to a pending transaction, moves money for approvals, and reports the outcome.

    pending ──approve──> approved   (owner balance moved, balance_after_cents set)
       │
       └────decline───> declined   (no balance change)

Both states are terminal. A transaction changes state at most once.

Unit of work (one DB transaction, committed once):
  1. Take the owner account's in-process lock (see account_locks)
  2. Re-read the transaction; it must still be pending
  3. Re-read and lock the owner account; it must not be frozen *now*
     (freezing happens independently of intake, so the flag seen at
     intake time means nothing here)
  4. approve only: compute the new balance from the balance *now*, write it
     with a compare-and-swap, and credit the transfer recipient if it exists
     and is not frozen
  5. Flip the status with a guarded UPDATE (WHERE status = 'pending'),
     setting admin action and balance_after_cents in the same statement.
     Zero rows means another transition won: AlreadyProcessedError.
  6. Commit, then notify

  Any exception before the commit rolls the whole unit back: the transaction
  stays pending and no balance has moved. A caller that gets no answer
  should re-read the transaction by id rather than resubmit the decision.

Transfers to a missing or frozen recipient:
  The sender is still debited and no credit happens. This mirrors how the
  product behaves today and is logged at WARNING on every occurrence; see
  DESIGN.md for the open product question.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.config import settings
from bank_approvals.exceptions import (
    AccountFrozenError,
    AlreadyProcessedError,
    InsufficientFundsError,
    TransactionNotFoundError,
    ValidationError,
)
from bank_approvals.models.account import MAX_BALANCE_CENTS, Account
from bank_approvals.models.transaction import (
    DEBIT_TYPES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from bank_approvals.models.user import User
from bank_approvals.notifications import NotificationDispatcher, NotificationEvent
from bank_approvals.services import account_service
from bank_approvals.services.account_locks import account_locks
from bank_approvals.services.transaction_service import serialize_transaction

logger = logging.getLogger(__name__)

APPROVE = "approve"
DECLINE = "decline"
ACTIONS = {
    APPROVE: TransactionStatus.APPROVED.value,
    DECLINE: TransactionStatus.DECLINED.value,
}


async def _load_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(transaction_id)

    return txn


async def _move_owner_balance(
    db: AsyncSession,
    txn: Transaction,
    owner: Account,
) -> int:
    """
    Apply the transaction to the owner's balance; return the new balance.

    The balance is compare-and-swapped against the value just read. If the
    swap misses (another writer moved the balance in between), re-read and
    decide again, up to BALANCE_UPDATE_ATTEMPTS times.
    """
    for attempt in range(settings.BALANCE_UPDATE_ATTEMPTS):
        if attempt:
            owner = await account_service.lock_account(db, owner.id)
            if owner.is_frozen:
                raise AccountFrozenError(owner.id)

        current = owner.balance_cents
        if txn.type in DEBIT_TYPES:
            if current < txn.amount_cents:
                raise InsufficientFundsError(
                    account_id=owner.id,
                    requested_cents=txn.amount_cents,
                    available_cents=current,
                )
            new_balance = current - txn.amount_cents
        else:
            if current > MAX_BALANCE_CENTS - txn.amount_cents:
                raise ValidationError(
                    "Deposit would exceed the maximum account balance"
                )
            new_balance = current + txn.amount_cents

        if await account_service.swap_balance(db, owner.id, current, new_balance):
            return new_balance

        logger.info(
            "Balance of account %s changed during approval of %s, re-reading",
            owner.account_number, txn.transaction_id,
        )

    raise RuntimeError(
        f"Could not update balance for {txn.transaction_id} after "
        f"{settings.BALANCE_UPDATE_ATTEMPTS} attempts"
    )


async def _credit_recipient(db: AsyncSession, txn: Transaction) -> bool:
    """Credit the transfer recipient if it exists and can receive. Returns True if credited."""
    recipient = await account_service.get_account_by_number(
        db, txn.recipient_account_number
    )

    if recipient is None or recipient.is_frozen or not recipient.is_active:
        logger.warning(
            "Transfer %s approved without credit: recipient account %s is %s",
            txn.transaction_id,
            txn.recipient_account_number,
            "missing" if recipient is None else "frozen or inactive",
        )
        return False

    if not await account_service.credit_balance(db, recipient.id, txn.amount_cents):
        raise ValidationError(
            "Transfer would exceed the recipient's maximum account balance"
        )
    return True


async def _apply_decision(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    action: str,
    admin_id: uuid.UUID,
    comment: str | None,
) -> tuple[Transaction, int]:
    txn = await _load_transaction(db, transaction_id)
    if not txn.is_pending:
        raise AlreadyProcessedError(txn.id, txn.status)

    owner = await account_service.lock_account(db, txn.account_id)
    if owner.is_frozen:
        raise AccountFrozenError(owner.id)

    balance_after = None
    owner_balance = owner.balance_cents

    if action == APPROVE:
        owner_balance = await _move_owner_balance(db, txn, owner)
        balance_after = owner_balance
        if txn.type == TransactionType.TRANSFER.value:
            await _credit_recipient(db, txn)

    now = datetime.now(timezone.utc)
    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == txn.id)
        .where(Transaction.status == TransactionStatus.PENDING.value)
        .values(
            status=ACTIONS[action],
            admin_id=admin_id,
            action_date=now,
            admin_comment=comment or "",
            balance_after_cents=balance_after,
            updated_at=now,
        )
    )
    if result.rowcount != 1:
        raise AlreadyProcessedError(txn.id)

    return await _load_transaction(db, txn.id), owner_balance


async def process_transaction(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    transaction_id: uuid.UUID,
    action: str,
    admin: User,
    comment: str | None = None,
) -> tuple[Transaction, int]:
    """
    Approve or decline a pending transaction.

    Args:
        db: Database session.
        dispatcher: Notification dispatcher.
        transaction_id: The transaction to process.
        action: "approve" or "decline".
        admin: The admin making the decision.
        comment: Optional note stored in the admin action.

    Returns:
        Tuple of (updated Transaction, owner's balance in cents after the decision).

    Raises:
        ValidationError: Unknown action.
        TransactionNotFoundError: No such transaction (or it was cancelled).
        AlreadyProcessedError: Not pending any more; nothing was changed.
        AccountFrozenError: Owner is frozen; the transaction stays pending.
        InsufficientFundsError: Approval of a debit larger than the balance
                                now; the transaction stays pending.
    """
    if action not in ACTIONS:
        raise ValidationError("Valid action (approve/decline) is required")

    # Only used to pick the lock; every decision is re-made under it
    result = await db.execute(
        select(Transaction.account_id).where(Transaction.id == transaction_id)
    )
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise TransactionNotFoundError(transaction_id)

    async with account_locks.hold(owner_id):
        try:
            txn, owner_balance = await _apply_decision(
                db, transaction_id, action, admin.id, comment
            )
        except Exception:
            await db.rollback()
            raise
        await db.commit()

    logger.info(
        "%s %s %s (%d cents) by %s; owner balance %d",
        ACTIONS[action].capitalize(), txn.type, txn.transaction_id,
        txn.amount_cents, admin.username, owner_balance,
    )

    dispatcher.notify_account(
        txn.account_id,
        NotificationEvent.TRANSACTION_UPDATE,
        {
            "transaction": serialize_transaction(txn),
            "user_balance_cents": owner_balance,
            "action": action,
        },
    )
    dispatcher.notify_admins(
        NotificationEvent.TRANSACTION_PROCESSED,
        {
            "transaction_id": txn.id,
            "reference": txn.transaction_id,
            "action": action,
            "admin_username": admin.username,
        },
    )
    return txn, owner_balance
