"""
Pydantic schemas for authentication endpoints (signup and login).

Pydantic validates incoming data automatically: if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr
    password: str = Field(min_length=8)
    username: str = Field(min_length=1, max_length=100)


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login, contains the JWT."""
    token: str
    token_type: str = "bearer"
    role: str


class SignupResponse(BaseModel):
    """Response body for successful signup: identity, new account, JWT."""
    user_id: uuid.UUID
    account_id: uuid.UUID
    account_number: str
    email: str
    role: str
    token: str
    token_type: str = "bearer"
