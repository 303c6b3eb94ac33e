"""
FastAPI dependencies for authentication and authorization.

Dependencies form a chain that enforces both authentication and role-based
access control:

  get_current_user (JWT -> User)
      ├── get_current_account (User -> Account)   [USER role]
      └── require_admin (User -> User)            [ADMIN role]

Roles:
  - USER: Can submit, list, and cancel their own transactions. Every member
    endpoint uses get_current_account, which scopes all queries to the
    caller's own account.
  - ADMIN: Processes pending transactions, freezes customer accounts, and
    reads the whole ledger. Admins cannot submit transactions themselves.

The WebSocket channel cannot use the Authorization header from browsers, so
get_socket_identity() reads the token from the ?token= query parameter.
"""

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.database import get_db
from bank_approvals.models.account import Account
from bank_approvals.models.user import User, UserRole
from bank_approvals.security import token_subject
from bank_approvals.services import account_service


# Reads "Authorization: Bearer <token>"; tokenUrl feeds Swagger's Authorize button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def authenticate_token(token: str, db: AsyncSession) -> User | None:
    """
    Resolve a JWT to an active User, or None if the token is unusable.

    Shared by the REST dependency below and the notification WebSocket.
    """
    user_id = token_subject(token)
    if user_id is None:
        return None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        return None

    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist.
    """
    user = await authenticate_token(token, db)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Get the bank account of the authenticated customer.

    Admin users are blocked from customer endpoints; they use /admin/*.

    Raises:
        HTTPException 403: If the user is an admin.
        HTTPException 404: If the user has no account.
    """
    if user.role != UserRole.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User access required",
        )

    account = await account_service.get_account_for_user(db, user.id)

    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )

    return account


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require the authenticated user to have the ADMIN role.

    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


async def get_socket_identity(
    token: str = Query(""),
    db: AsyncSession = Depends(get_db),
) -> tuple[User, Account] | None:
    """
    Resolve the ?token= of a WebSocket handshake to (User, Account).

    Returns None instead of raising: a WebSocket is refused with a close
    code, not an HTTP error.
    """
    user = await authenticate_token(token, db)
    account = (
        await account_service.get_account_for_user(db, user.id)
        if user is not None else None
    )
    # The socket can stay open for hours; don't hold a read transaction
    await db.rollback()

    if account is None:
        return None
    return user, account
