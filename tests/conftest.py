"""
Test fixtures for the Bank Approvals test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database for each test
  - dispatcher: A NotificationDispatcher that records every event it is given
  - make_client: Factory for independent async HTTP test clients
  - client: Unauthenticated test client
  - member / second_member: Signed-up customers, each with their own client
  - admin: A signed-up user promoted to ADMIN, with its own client
  - set_balance: Writes a balance directly (deposits otherwise need approval)
  - file_engine: File-backed SQLite engine for tests that run sessions
    concurrently

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database; no state leaks between tests.
  - We override FastAPI's get_db dependency to inject our test session,
    so the application code works exactly as it does in production.
  - Every user gets its own AsyncClient, so their Authorization headers
    never overwrite each other.
  - The admin fixture signs up normally and then updates the role directly
    in the DB: admins are provisioned by an operator, not self-service.
  - The in-memory engine shares one connection between sessions, so a
    rollback in one session can undo another's uncommitted work. Tests that
    interleave sessions use file_engine instead, which gives each session
    its own connection like a real deployment.
"""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import uuid
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from bank_approvals.database import Base, get_db
from bank_approvals.main import app
from bank_approvals.models.account import Account
from bank_approvals.models.user import User, UserRole
from bank_approvals.notifications import (
    ConnectionRegistry,
    NotificationDispatcher,
    get_dispatcher,
)


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records notifications instead of only delivering them."""

    def __init__(self):
        super().__init__(ConnectionRegistry())
        self.sent: list[tuple[str, str, dict]] = []

    def notify_account(self, account_id, event, payload):
        self.sent.append((str(account_id), event.value, payload))
        super().notify_account(account_id, event, payload)

    def notify_admins(self, event, payload):
        self.sent.append(("admins", event.value, payload))
        super().notify_admins(event, payload)

    def events(self, target: str | None = None) -> list[str]:
        return [event for t, event, _ in self.sent if target is None or t == target]

    def payloads(self, event: str) -> list[dict]:
        return [payload for _, e, payload in self.sent if e == event]


@dataclass
class Member:
    """A signed-up user and the client that acts as them."""
    client: AsyncClient
    user_id: str
    account_id: str
    account_number: str
    email: str
    password: str


async def _create_tables(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    await _create_tables(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed engine: every session gets its own SQLite connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bank.db'}")
    await _create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest_asyncio.fixture
async def make_client(session_factory, dispatcher):
    """
    Factory for async HTTP test clients with the test database injected.

    This overrides the get_db dependency so all requests hit the in-memory
    test database instead of the real one, and get_dispatcher so every
    notification is recorded.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    clients: list[AsyncClient] = []

    def factory() -> AsyncClient:
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(ac)
        return ac

    yield factory

    for ac in clients:
        await ac.aclose()
    await dispatcher.drain()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(make_client):
    """Unauthenticated test client."""
    return make_client()


async def signup_member(
    make_client,
    email: str,
    username: str,
    password: str = "SecurePass123!",
) -> Member:
    """Sign up through the real endpoint and return an authenticated Member."""
    ac = make_client()
    response = await ac.post(
        "/auth/signup",
        json={"email": email, "password": password, "username": username},
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    data = response.json()
    ac.headers["Authorization"] = f"Bearer {data['token']}"
    return Member(
        client=ac,
        user_id=data["user_id"],
        account_id=data["account_id"],
        account_number=data["account_number"],
        email=email,
        password=password,
    )


@pytest_asyncio.fixture
async def member(make_client):
    """A signed-up customer with a zero balance."""
    return await signup_member(make_client, "alice@example.com", "alice")


@pytest_asyncio.fixture
async def second_member(make_client):
    """A second customer for transfer and cross-user tests."""
    return await signup_member(make_client, "bob@example.com", "bob")


@pytest_asyncio.fixture
async def admin(make_client, session_factory):
    """
    A signed-up user promoted to ADMIN.

    Promotion happens directly in the database; a fresh login afterwards
    keeps the flow realistic (the role is not part of the JWT).
    """
    admin = await signup_member(make_client, "admin@example.com", "admin", "AdminPass123!")

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.id == uuid.UUID(admin.user_id))
            .values(role=UserRole.ADMIN)
        )
        await session.commit()

    login = await admin.client.post(
        "/auth/login",
        json={"email": admin.email, "password": admin.password},
    )
    assert login.status_code == 200
    admin.client.headers["Authorization"] = f"Bearer {login.json()['token']}"
    return admin


@pytest.fixture
def set_balance(session_factory):
    """Write an account balance directly, bypassing the approval flow."""
    async def _set(account_id: str, balance_cents: int) -> None:
        async with session_factory() as session:
            await session.execute(
                update(Account)
                .where(Account.id == uuid.UUID(account_id))
                .values(balance_cents=balance_cents)
            )
            await session.commit()
    return _set


async def submit(member: Member, **body) -> dict:
    """POST /transactions as member and assert it was accepted."""
    response = await member.client.post("/transactions", json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def balance_of(member: Member) -> int:
    response = await member.client.get("/accounts/me")
    assert response.status_code == 200, response.text
    return response.json()["balance_cents"]
