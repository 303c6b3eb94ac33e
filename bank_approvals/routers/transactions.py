"""
Transactions router — customer transaction requests.

Every endpoint is scoped to the authenticated customer's own account;
another account's transaction is indistinguishable from a missing one.

Endpoints:
  POST   /transactions        — Submit a deposit, withdrawal, or transfer (pending)
  GET    /transactions        — List own transactions, paged, newest first
  GET    /transactions/{id}   — Get one own transaction
  DELETE /transactions/{id}   — Cancel an own pending transaction

Admin endpoints are in the dedicated admin router (routers/admin.py).
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.database import get_db
from bank_approvals.dependencies import get_current_account
from bank_approvals.models.account import Account
from bank_approvals.models.transaction import TransactionStatus
from bank_approvals.notifications import NotificationDispatcher, get_dispatcher
from bank_approvals.schemas.transaction import (
    CancelTransactionResponse,
    TransactionCreateRequest,
    TransactionPage,
    TransactionResponse,
)
from bank_approvals.services import transaction_service

router = APIRouter()


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a transaction for approval",
)
async def create_transaction(
    request: TransactionCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Submit a transaction request. It is recorded as **pending** and no
    money moves until an admin approves it.

    - **deposit**: Adds money on approval
    - **withdrawal**: Removes money on approval
    - **transfer**: Removes money on approval and credits the recipient
      account (addressed by account number)

    Withdrawals and transfers larger than the current balance are rejected.
    The check is not a hold: the balance is checked again at approval.

    All amounts are in **integer cents** (e.g., $10.50 = 1050).
    """
    return await transaction_service.create_transaction(
        db=db,
        dispatcher=dispatcher,
        account_id=account.id,
        txn_type=request.type,
        amount_cents=request.amount_cents,
        description=request.description,
        recipient=request.recipient.model_dump() if request.recipient else None,
    )


@router.get(
    "",
    response_model=TransactionPage,
    summary="List own transactions",
)
async def list_transactions(
    status: TransactionStatus | None = Query(None, description="Filter by status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """List the customer's transactions, newest first, one page at a time."""
    return await transaction_service.list_transactions(
        db=db,
        account_id=account.id,
        status_filter=status.value if status else None,
        page=page,
        limit=limit,
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a single transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Get details for one of the customer's transactions."""
    return await transaction_service.get_transaction(
        db=db,
        transaction_id=transaction_id,
        account_id=account.id,
    )


@router.delete(
    "/{transaction_id}",
    response_model=CancelTransactionResponse,
    summary="Cancel a pending transaction",
)
async def cancel_transaction(
    transaction_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Cancel one of the customer's **pending** transactions.

    Approved and declined transactions are final and cannot be cancelled.
    Cancelling never changes a balance.
    """
    await transaction_service.cancel_transaction(
        db=db,
        dispatcher=dispatcher,
        transaction_id=transaction_id,
        account_id=account.id,
    )
    return CancelTransactionResponse(
        message="Transaction cancelled successfully",
        transaction_id=transaction_id,
    )
