"""
Security utilities: password hashing and bearer tokens.

Authentication sits outside the transactional core. This module is the
narrow interface the API uses to know who is calling; nothing in the
approval or intake services depends on it.

Passwords are stored as Argon2id hashes through passlib's CryptContext
(deprecated="auto" rehashes transparently if the scheme ever changes).

Tokens are HS256 JWTs signed with SECRET_KEY:
  - "sub":  the user ID
  - "role": the role at issue time, informational only; authorization always
            re-reads the role from the database
  - "iat" / "exp": issue and expiry times

The same token authenticates REST calls (Authorization: Bearer) and the
notification WebSocket (?token= query parameter).
"""

import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from bank_approvals.config import settings


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Constant-time check of a plaintext password against a stored hash."""
    return pwd_context.verify(plain_password, hashed_password)


def issue_token(user_id: uuid.UUID, role: str, lifetime: timedelta | None = None) -> str:
    """
    Sign a bearer token for a user.

    Args:
        user_id: The user the token speaks for.
        role: The user's role value ("user" or "admin").
        lifetime: Overrides ACCESS_TOKEN_EXPIRE_MINUTES.
    """
    issued = datetime.now(timezone.utc)
    lifetime = lifetime or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def token_subject(token: str) -> uuid.UUID | None:
    """
    Return the user ID a token was issued for.

    Expired, tampered, or malformed tokens return None; callers decide
    whether that means 401 or a closed socket.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return uuid.UUID(claims["sub"])
    except (JWTError, KeyError, TypeError, ValueError):
        return None
