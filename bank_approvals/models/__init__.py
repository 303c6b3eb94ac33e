"""
SQLAlchemy ORM models package.

All models are imported here so that Base.metadata knows every table
before create_all() runs, and so other modules can import from
bank_approvals.models directly.
"""

from bank_approvals.models.user import User, UserRole  # noqa: F401
from bank_approvals.models.account import Account  # noqa: F401
from bank_approvals.models.transaction import (  # noqa: F401
    Transaction,
    TransactionStatus,
    TransactionType,
)
