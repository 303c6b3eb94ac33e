"""
Pydantic schemas for Transaction endpoints.

All monetary amounts are in integer cents (e.g., $10.50 = 1050).
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from bank_approvals.config import settings


class RecipientSchema(BaseModel):
    """Transfer destination, addressed by account number."""
    account_number: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=200)


class AdminActionSchema(BaseModel):
    admin_id: uuid.UUID
    action_date: datetime | None
    comment: str = ""


class TransactionCreateRequest(BaseModel):
    """Request body for POST /transactions."""
    type: Literal["deposit", "withdrawal", "transfer"]
    amount_cents: int = Field(
        gt=0,
        le=settings.MAX_AMOUNT_CENTS,
        description="Amount in cents (positive, at most MAX_AMOUNT_CENTS)",
    )
    description: str | None = Field(None, max_length=255)
    recipient: RecipientSchema | None = None

    @model_validator(mode="after")
    def transfer_needs_recipient(self):
        """Transfers must name a recipient; other types must not."""
        if self.type == "transfer" and self.recipient is None:
            raise ValueError("Recipient details are required for transfers")
        if self.type != "transfer":
            self.recipient = None
        return self


class TransactionResponse(BaseModel):
    """Public representation of a transaction."""
    id: uuid.UUID
    transaction_id: str
    account_id: uuid.UUID
    type: str
    amount_cents: int
    description: str | None
    recipient: RecipientSchema | None
    status: str
    admin_action: AdminActionSchema | None
    balance_after_cents: int | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TransactionPage(BaseModel):
    """One page of a transaction listing, newest first."""
    transactions: list[TransactionResponse]
    total: int
    total_pages: int
    current_page: int


class ProcessTransactionRequest(BaseModel):
    """Request body for PATCH /admin/transactions/{id}."""
    action: Literal["approve", "decline"]
    comment: str | None = Field(None, max_length=500)


class ProcessTransactionResponse(BaseModel):
    message: str
    transaction: TransactionResponse
    user_balance_cents: int


class CancelTransactionResponse(BaseModel):
    message: str
    transaction_id: uuid.UUID


class DashboardStatsResponse(BaseModel):
    total_users: int
    pending_transactions: int
    total_transactions: int
    frozen_accounts: int
    recent_transactions: list[TransactionResponse]
