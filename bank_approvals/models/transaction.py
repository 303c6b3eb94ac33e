"""
Transaction model — the Ledger record of a customer request.

A Transaction is created by intake in the "pending" state and changes state
exactly once, when an admin approves or declines it:

    pending ──approve──> approved   (balance moved, balance_after_cents set)
       │
       └────decline───> declined   (no balance change)

A pending transaction may instead be cancelled by its owner, which deletes
the row. Cancellation, approval and decline all go through a guarded write
on (id, status='pending'), so exactly one of them can win.

Key fields:
  - transaction_id: human-readable reference, unique (e.g. TXN1718000000000123456)
  - type: "deposit", "withdrawal", or "transfer"
  - amount_cents: Always positive (the direction is implied by the type)
  - recipient_account_number / recipient_name: transfer destination, resolved
    by account number at approval time (not a foreign key)
  - admin_id / action_date / admin_comment: who processed it and when
  - balance_after_cents: owner's balance right after approval
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, BigInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bank_approvals.database import Base


class TransactionType(str, enum.Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


# Types that take money out of the owner's account
DEBIT_TYPES = frozenset({TransactionType.WITHDRAWAL.value, TransactionType.TRANSFER.value})


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'declined')",
            name="ck_transactions_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Human-readable reference; uniqueness is enforced by the database so a
    # colliding id is rejected, never overwritten
    transaction_id: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
    )

    # Owner
    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Transfer destination (both set iff type == "transfer")
    recipient_account_number: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    recipient_name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        index=True,
    )

    # Admin action (set together with the status transition)
    admin_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    action_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    admin_comment: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Set only on approval
    balance_after_cents: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def recipient(self) -> dict | None:
        if self.recipient_account_number is None:
            return None
        return {
            "account_number": self.recipient_account_number,
            "name": self.recipient_name,
        }

    @property
    def admin_action(self) -> dict | None:
        if self.admin_id is None:
            return None
        return {
            "admin_id": self.admin_id,
            "action_date": self.action_date,
            "comment": self.admin_comment or "",
        }

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING.value
