"""
Accounts router — the customer's own account.

Endpoints:
  GET /accounts/me — Own account details and current balance

Each customer has exactly one account, created at signup, so there is no
account id in the path. Admin account endpoints live in routers/admin.py.
"""

from fastapi import APIRouter, Depends

from bank_approvals.dependencies import get_current_account
from bank_approvals.models.account import Account
from bank_approvals.schemas.account import AccountResponse

router = APIRouter()


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get own account and balance",
)
async def get_my_account(
    account: Account = Depends(get_current_account),
):
    """
    Return the authenticated customer's account.

    `balance_cents` only reflects approved transactions; pending requests
    have not moved any money yet.
    """
    return account
