"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handlers registered here translate them
into HTTP responses with a consistent body:

    {"detail": "...", "error_type": "...", ...extra fields}

Every domain error is terminal for the caller: retrying the same request
without new input gives the same answer.

Exception hierarchy:
    BankAPIError (base)
    ├── ValidationError          — malformed request (amount, type, recipient)
    ├── AccountFrozenError       — owner account is frozen
    ├── InsufficientFundsError   — debit larger than the current balance
    ├── SelfTransferError        — transfer addressed to the sender's own account
    ├── NotFoundError
    │   ├── AccountNotFoundError
    │   └── TransactionNotFoundError
    ├── AlreadyProcessedError    — approval/decline of a non-pending transaction
    ├── NotPendingError          — cancellation of a non-pending transaction
    ├── ForbiddenError           — role violation (e.g. freezing an admin)
    ├── DuplicateEmailError
    └── InvalidCredentialsError
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class BankAPIError(Exception):
    """Base exception for all domain errors."""

    status_code = 400
    error_type = "bank_api_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Request / business-rule errors
# ---------------------------------------------------------------------------

class ValidationError(BankAPIError):
    """Raised when a request is malformed (bad amount, type, or recipient)."""

    error_type = "validation_error"


class AccountFrozenError(BankAPIError):
    """Raised when the owning account is frozen."""

    status_code = 403
    error_type = "account_frozen"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__("Account is frozen. Cannot perform transactions.")


class InsufficientFundsError(BankAPIError):
    """
    Raised when a withdrawal or transfer exceeds the current balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested_cents: The amount the user tried to debit.
        available_cents: The balance at the moment of the check.
    """

    status_code = 422
    error_type = "insufficient_funds"

    def __init__(
        self,
        account_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.account_id = account_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient funds: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )

    def extra(self) -> dict:
        return {
            "requested_cents": self.requested_cents,
            "available_cents": self.available_cents,
        }


class SelfTransferError(BankAPIError):
    """Raised when a transfer names the sender's own account number."""

    error_type = "self_transfer"

    def __init__(self):
        super().__init__("Cannot transfer to your own account")


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------

class NotFoundError(BankAPIError):
    """Raised when a requested resource does not exist (or isn't visible)."""

    status_code = 404
    error_type = "not_found"


class AccountNotFoundError(NotFoundError):
    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class TransactionNotFoundError(NotFoundError):
    error_type = "transaction_not_found"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


# ---------------------------------------------------------------------------
# State-machine race losers
# ---------------------------------------------------------------------------

class AlreadyProcessedError(BankAPIError):
    """Raised when approve/decline targets a transaction that is no longer pending."""

    status_code = 409
    error_type = "already_processed"

    def __init__(self, transaction_id: uuid.UUID, status: str | None = None):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__("Only pending transactions can be processed")

    def extra(self) -> dict:
        return {"status": self.status} if self.status else {}


class NotPendingError(BankAPIError):
    """Raised when a cancellation targets a transaction that is no longer pending."""

    status_code = 409
    error_type = "not_pending"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__("Only pending transactions can be cancelled")


# ---------------------------------------------------------------------------
# Role / auth errors
# ---------------------------------------------------------------------------

class ForbiddenError(BankAPIError):
    """Raised on a role violation."""

    status_code = 403
    error_type = "forbidden"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class DuplicateEmailError(BankAPIError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(BankAPIError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Starlette resolves handlers along the exception's MRO, so one handler on
    BankAPIError covers every subclass; the status code and error_type live
    on the exception classes themselves.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(BankAPIError)
    async def bank_api_error_handler(
        request: Request, exc: BankAPIError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                **exc.extra(),
            },
        )
