"""
Pydantic schemas for Account endpoints.

All monetary amounts are expressed in integer cents.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class AccountResponse(BaseModel):
    """Public representation of a bank account."""
    id: uuid.UUID
    user_id: uuid.UUID
    account_number: str
    holder_name: str
    balance_cents: int
    is_frozen: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminAccountResponse(AccountResponse):
    """Account plus owner identity, for the admin account list."""
    username: str
    email: str
    role: str


class AccountPage(BaseModel):
    accounts: list[AdminAccountResponse]
    total: int
    total_pages: int
    current_page: int


class FreezeRequest(BaseModel):
    """Request body for PATCH /admin/accounts/{id}/freeze."""
    freeze: bool


class FreezeResponse(BaseModel):
    message: str
    account_id: uuid.UUID
    is_frozen: bool
