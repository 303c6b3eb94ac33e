"""
Authentication service — signup and login business logic.

Signup flow:
  1. Check if email is already registered
  2. Hash the password with Argon2id
  3. Create User + Account (balance 0) in a single database transaction
  4. Return a JWT token so the user is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token

Login returns the same error for "wrong password" and "email not found"
to prevent user enumeration.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bank_approvals.exceptions import DuplicateEmailError, InvalidCredentialsError
from bank_approvals.models.account import Account
from bank_approvals.models.user import User, UserRole
from bank_approvals.security import hash_password, issue_token, verify_password
from bank_approvals.services import account_service

logger = logging.getLogger(__name__)


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    username: str,
    role: UserRole = UserRole.USER,
    balance_cents: int = 0,
) -> tuple[User, Account]:
    """
    Create a User and its Account. Flushes, does not commit.

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    user = User(
        email=email,
        username=username,
        hashed_password=hash_password(password),
        role=role,
    )
    db.add(user)
    # Flush to get user.id assigned (needed for the FK below)
    await db.flush()

    account = await account_service.create_account(
        db,
        user_id=user.id,
        holder_name=username,
        balance_cents=balance_cents,
    )
    return user, account


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
    username: str,
) -> tuple[User, Account, str]:
    """
    Register a new customer with a zero-balance account.

    Returns:
        Tuple of (User, Account, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
    """
    user, account = await create_user(db, email, password, username)

    token = issue_token(user.id, user.role.value)

    logger.info("Registered %s with account %s", email, account.account_number)
    return user, account, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, the password is
                                 wrong, or the user is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = issue_token(user.id, user.role.value)
    return user, token
