"""
Authentication router — signup and login endpoints.

These are the only public (unauthenticated) endpoints in the API besides
the health probe. Everything else requires a valid JWT token.

Endpoints:
  POST /auth/signup  — Register a customer, open a zero-balance account, get a token
  POST /auth/login   — Authenticate and get a token

Security notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - JWT tokens appear only in response bodies, which are not logged by
    uvicorn (it logs method, path, and status code only).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.database import get_db
from bank_approvals.schemas.auth import (
    UserSignupRequest,
    UserLoginRequest,
    TokenResponse,
    SignupResponse,
)
from bank_approvals.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new customer",
)
async def signup(
    request: UserSignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new bank customer.

    Creates a User and its Account (balance 0) in a single atomic
    transaction. Returns a JWT token so the user is immediately logged in.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **username**: Also used as the account holder name
    """
    user, account, token = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
        username=request.username,
    )

    return SignupResponse(
        user_id=user.id,
        account_id=account.id,
        account_number=account.account_number,
        email=user.email,
        role=user.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a JWT bearer token that must be included in the Authorization
    header for all subsequent requests:

        Authorization: Bearer <token>

    The same token authenticates the notification WebSocket (`/ws?token=`).
    """
    user, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )

    return TokenResponse(token=token, role=user.role.value)
