"""
Account model — the Account Store record.

Each account has:
  - A unique 10-digit account number, used to address transfers
  - A balance in integer cents
  - A frozen flag set by admins (frozen accounts cannot submit transactions
    and their pending transactions cannot be approved)
  - An owner User (one-to-one); the account's role is the owner's role

Balance management:
  `balance_cents` is only ever changed by the approval engine, through a
  guarded UPDATE (see account_service.swap_balance / credit_balance). A CHECK
  constraint at the database level enforces that the balance can never go
  negative; the application checks first, the constraint is the last line.

Why integer cents?
  Floating point cannot represent most decimal amounts exactly
  (0.1 + 0.2 != 0.3). Integer cents keep all arithmetic exact: $10.99 is
  stored as 1099 and the frontend divides by 100 for display.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, BigInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bank_approvals.database import Base

# Largest value a BigInteger balance column can hold
MAX_BALANCE_CENTS = 2**63 - 1


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint(
            "balance_cents >= 0",
            name="ck_accounts_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # One account per user
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

    account_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )

    # Name shown on transfers addressed to this account
    holder_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    is_frozen: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="account",
    )
