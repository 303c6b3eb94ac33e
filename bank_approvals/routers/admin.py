"""
Admin router — the approval queue, account controls, and org-wide reads.

All endpoints require ADMIN role. Admins are the only actors that can move
money (by approving a pending transaction) or freeze an account. They
cannot submit transactions of their own.

Endpoints:
  GET   /admin/transactions                 — List ALL transactions (filters, paged)
  GET   /admin/transactions/pending         — The pending approval queue
  GET   /admin/transactions/{id}            — Get any transaction by ID
  PATCH /admin/transactions/{id}            — Approve or decline a pending transaction
  GET   /admin/accounts                     — List customer accounts (search, paged)
  PATCH /admin/accounts/{account_id}/freeze — Freeze or unfreeze a customer account
  GET   /admin/dashboard/stats              — Counters for the admin dashboard

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths. /transactions/pending is declared before
/transactions/{transaction_id} for the same reason.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.database import get_db
from bank_approvals.dependencies import require_admin
from bank_approvals.models.transaction import TransactionStatus
from bank_approvals.models.user import User
from bank_approvals.notifications import NotificationDispatcher, get_dispatcher
from bank_approvals.schemas.account import AccountPage, FreezeRequest, FreezeResponse
from bank_approvals.schemas.transaction import (
    DashboardStatsResponse,
    ProcessTransactionRequest,
    ProcessTransactionResponse,
    TransactionPage,
    TransactionResponse,
)
from bank_approvals.services import account_service, approval_service, transaction_service

router = APIRouter()


# ---------------------------------------------------------------------------
# Transaction admin endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/transactions",
    response_model=TransactionPage,
    summary="[Admin] List ALL transactions",
)
async def admin_list_transactions(
    status: TransactionStatus | None = Query(None, description="Filter by status"),
    account_id: uuid.UUID | None = Query(None, description="Filter by owner account"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    List every transaction in the system, newest first.

    Supports filtering by status (pending/approved/declined) and by owner
    account, plus pagination.
    """
    return await transaction_service.list_transactions(
        db=db,
        account_id=account_id,
        status_filter=status.value if status else None,
        page=page,
        limit=limit,
    )


@router.get(
    "/transactions/pending",
    response_model=TransactionPage,
    summary="[Admin] List transactions waiting for a decision",
)
async def admin_list_pending(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """The approval queue: every pending transaction, newest first."""
    return await transaction_service.list_transactions(
        db=db,
        status_filter=TransactionStatus.PENDING.value,
        page=page,
        limit=limit,
    )


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="[Admin] Get any transaction by ID",
)
async def admin_get_transaction(
    transaction_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Get any single transaction by ID, without ownership check."""
    return await transaction_service.get_transaction(
        db=db,
        transaction_id=transaction_id,
    )


@router.patch(
    "/transactions/{transaction_id}",
    response_model=ProcessTransactionResponse,
    summary="[Admin] Approve or decline a pending transaction",
)
async def admin_process_transaction(
    transaction_id: uuid.UUID,
    request: ProcessTransactionRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Apply a decision to a **pending** transaction.

    - **approve**: Moves the money (re-checking the balance and frozen
      status as they are now) and marks the transaction approved
    - **decline**: Marks the transaction declined; no money moves

    A transaction is decided exactly once. Deciding it again returns 409
    and changes nothing. If approval fails (frozen account, insufficient
    funds) the transaction stays pending.
    """
    txn, owner_balance = await approval_service.process_transaction(
        db=db,
        dispatcher=dispatcher,
        transaction_id=transaction_id,
        action=request.action,
        admin=admin,
        comment=request.comment,
    )
    return ProcessTransactionResponse(
        message=f"Transaction {txn.status} successfully",
        transaction=TransactionResponse.model_validate(txn),
        user_balance_cents=owner_balance,
    )


# ---------------------------------------------------------------------------
# Account admin endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/accounts",
    response_model=AccountPage,
    summary="[Admin] List customer accounts",
)
async def admin_list_accounts(
    search: str | None = Query(None, description="Match username, email, or account number"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List customer accounts with their owner's identity, newest first."""
    return await account_service.admin_list_accounts(
        db=db,
        search=search,
        page=page,
        limit=limit,
    )


@router.patch(
    "/accounts/{account_id}/freeze",
    response_model=FreezeResponse,
    summary="[Admin] Freeze or unfreeze a customer account",
)
async def admin_freeze_account(
    account_id: uuid.UUID,
    request: FreezeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Freeze or unfreeze a customer account.

    A frozen account cannot submit transactions and its pending
    transactions cannot be approved until it is unfrozen. Pending
    transactions are left as they are. Admin accounts cannot be frozen.
    """
    account = await account_service.set_frozen(
        db=db,
        dispatcher=dispatcher,
        account_id=account_id,
        freeze=request.freeze,
    )
    return FreezeResponse(
        message=f"Account {'frozen' if account.is_frozen else 'unfrozen'} successfully",
        account_id=account.id,
        is_frozen=account.is_frozen,
    )


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@router.get(
    "/dashboard/stats",
    response_model=DashboardStatsResponse,
    summary="[Admin] Dashboard counters",
)
async def admin_dashboard_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Customer count, pending and total transactions, frozen accounts, recent activity."""
    return await transaction_service.admin_dashboard_stats(db)
