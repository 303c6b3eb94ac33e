"""
Tests for the notification dispatcher and the WebSocket channel.

These tests verify:
  - The registry routes by account id, supports several sockets per account,
    and keeps a separate admin set
  - Delivery is fire-and-forget: a failing socket is dropped and never
    affects the caller or the other sockets
  - Payloads are JSON-encoded inside the {"event", "data"} envelope
  - /ws rejects unusable tokens with 1008, registers accepted sockets, and
    unregisters them on disconnect
  - Real tokens resolve through the database: expired, foreign-signed and
    deactivated identities are refused, and the admin set follows the role
    stored in the database
"""

import logging
import uuid
from datetime import timedelta
from types import SimpleNamespace

import pytest
from fastapi import Query
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from bank_approvals.config import settings
from bank_approvals.database import Base, get_db
from bank_approvals.dependencies import get_socket_identity
from bank_approvals.main import app
from bank_approvals.models.user import User, UserRole
from bank_approvals.security import issue_token
from bank_approvals.services import transaction_service
from bank_approvals.notifications import (
    ConnectionRegistry,
    NotificationDispatcher,
    NotificationEvent,
    get_dispatcher,
)


class FakeConnection:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[dict] = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestConnectionRegistry:

    def test_several_connections_per_account(self):
        registry = ConnectionRegistry()
        account_id = uuid.uuid4()
        tab1, tab2 = FakeConnection(), FakeConnection()

        registry.register(account_id, tab1)
        registry.register(account_id, tab2)

        assert set(registry.for_account(account_id)) == {tab1, tab2}
        assert registry.admins() == []
        assert len(registry) == 2

    def test_admin_set(self):
        registry = ConnectionRegistry()
        admin_conn, user_conn = FakeConnection(), FakeConnection()

        registry.register(uuid.uuid4(), admin_conn, is_admin=True)
        registry.register(uuid.uuid4(), user_conn)

        assert registry.admins() == [admin_conn]

    def test_unregister(self):
        registry = ConnectionRegistry()
        account_id = uuid.uuid4()
        conn = FakeConnection()
        registry.register(account_id, conn, is_admin=True)

        registry.unregister(account_id, conn)

        assert registry.for_account(account_id) == []
        assert registry.admins() == []
        assert len(registry) == 0

    def test_unregister_unknown_is_harmless(self):
        registry = ConnectionRegistry()
        registry.unregister(uuid.uuid4(), FakeConnection())
        assert len(registry) == 0

    def test_discard_without_account(self):
        registry = ConnectionRegistry()
        a, b = uuid.uuid4(), uuid.uuid4()
        conn, other = FakeConnection(), FakeConnection()
        registry.register(a, conn, is_admin=True)
        registry.register(b, other)

        registry.discard(conn)

        assert registry.for_account(a) == []
        assert registry.for_account(b) == [other]
        assert registry.admins() == []


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class TestDispatcher:

    async def test_notify_account_reaches_every_tab(self):
        dispatcher = NotificationDispatcher()
        account_id = uuid.uuid4()
        tab1, tab2, stranger = FakeConnection(), FakeConnection(), FakeConnection()
        dispatcher.registry.register(account_id, tab1)
        dispatcher.registry.register(account_id, tab2)
        dispatcher.registry.register(uuid.uuid4(), stranger)

        dispatcher.notify_account(
            account_id,
            NotificationEvent.ACCOUNT_STATUS_CHANGE,
            {"is_frozen": True, "message": "Your account has been frozen"},
        )
        await dispatcher.drain()

        expected = {
            "event": "accountStatusChange",
            "data": {"is_frozen": True, "message": "Your account has been frozen"},
        }
        assert tab1.messages == [expected]
        assert tab2.messages == [expected]
        assert stranger.messages == []

    async def test_notify_admins(self):
        dispatcher = NotificationDispatcher()
        admin_conn, user_conn = FakeConnection(), FakeConnection()
        dispatcher.registry.register(uuid.uuid4(), admin_conn, is_admin=True)
        dispatcher.registry.register(uuid.uuid4(), user_conn)
        txn_id = uuid.uuid4()

        dispatcher.notify_admins(
            NotificationEvent.TRANSACTION_CANCELLED,
            {"transaction_id": txn_id, "reference": "TXN1"},
        )
        await dispatcher.drain()

        # UUIDs are JSON-encoded
        assert admin_conn.messages == [
            {
                "event": "transactionCancelled",
                "data": {"transaction_id": str(txn_id), "reference": "TXN1"},
            }
        ]
        assert user_conn.messages == []

    async def test_failing_connection_is_dropped(self, caplog):
        dispatcher = NotificationDispatcher()
        account_id = uuid.uuid4()
        broken, healthy = FakeConnection(fail=True), FakeConnection()
        dispatcher.registry.register(account_id, broken)
        dispatcher.registry.register(account_id, healthy)

        with caplog.at_level(logging.WARNING, logger="bank_approvals.notifications"):
            dispatcher.notify_account(
                account_id, NotificationEvent.TRANSACTION_UPDATE, {"action": "approve"}
            )
            await dispatcher.drain()

        assert len(healthy.messages) == 1
        assert dispatcher.registry.for_account(account_id) == [healthy]
        assert "Failed to deliver transactionUpdate" in caplog.text

    async def test_no_listeners(self):
        dispatcher = NotificationDispatcher()
        dispatcher.notify_admins(NotificationEvent.NEW_TRANSACTION, {"x": 1})
        await dispatcher.drain()

    def test_never_raises_outside_event_loop(self):
        dispatcher = NotificationDispatcher()
        dispatcher.registry.register(uuid.uuid4(), FakeConnection(), is_admin=True)

        # No running loop: the event is dropped and logged, not raised
        dispatcher.notify_admins(NotificationEvent.NEW_TRANSACTION, {"x": 1})


# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------

@pytest.fixture
def socket_app():
    """
    App with token lookup and dispatcher replaced.

    Tokens map straight to identities so the socket lifecycle can be tested
    without a database.
    """
    dispatcher = NotificationDispatcher()
    customer = (
        SimpleNamespace(username="alice", role=UserRole.USER),
        SimpleNamespace(id=uuid.uuid4()),
    )
    admin = (
        SimpleNamespace(username="admin", role=UserRole.ADMIN),
        SimpleNamespace(id=uuid.uuid4()),
    )
    identities = {"customer-token": customer, "admin-token": admin}

    def fake_identity(token: str = Query("")):
        return identities.get(token)

    app.dependency_overrides[get_socket_identity] = fake_identity
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    yield SimpleNamespace(
        client=TestClient(app),
        dispatcher=dispatcher,
        customer=customer,
        admin=admin,
    )

    app.dependency_overrides.clear()


class TestWebSocket:

    @pytest.mark.parametrize("query", ["", "?token=", "?token=garbage"])
    def test_bad_token_closed_with_policy_violation(self, socket_app, query):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with socket_app.client.websocket_connect(f"/ws{query}"):
                pass
        assert exc_info.value.code == 1008
        assert len(socket_app.dispatcher.registry) == 0

    def test_customer_registered_then_unregistered(self, socket_app):
        _, account = socket_app.customer

        with socket_app.client.websocket_connect("/ws?token=customer-token") as ws:
            hello = ws.receive_json()
            assert hello == {
                "event": "connected",
                "data": {"account_id": str(account.id), "is_admin": False},
            }
            assert len(socket_app.dispatcher.registry.for_account(account.id)) == 1
            assert socket_app.dispatcher.registry.admins() == []

        assert socket_app.dispatcher.registry.for_account(account.id) == []

    def test_admin_joins_broadcast(self, socket_app):
        with socket_app.client.websocket_connect("/ws?token=admin-token") as ws:
            assert ws.receive_json()["data"]["is_admin"] is True
            assert len(socket_app.dispatcher.registry.admins()) == 1

        assert socket_app.dispatcher.registry.admins() == []

    def test_event_delivered_to_socket(self, socket_app):
        _, account = socket_app.customer
        dispatcher = socket_app.dispatcher

        async def push():
            dispatcher.notify_account(
                account.id,
                NotificationEvent.TRANSACTION_UPDATE,
                {"action": "decline", "user_balance_cents": 1200},
            )
            await dispatcher.drain()

        with socket_app.client.websocket_connect("/ws?token=customer-token") as ws:
            ws.receive_json()
            ws.portal.call(push)
            message = ws.receive_json()

        assert message == {
            "event": "transactionUpdate",
            "data": {"action": "decline", "user_balance_cents": 1200},
        }

    def test_incoming_messages_are_ignored(self, socket_app):
        _, account = socket_app.customer

        with socket_app.client.websocket_connect("/ws?token=customer-token") as ws:
            ws.receive_json()
            ws.send_text("ping")
            ws.send_text("anything")
            assert len(socket_app.dispatcher.registry.for_account(account.id)) == 1


# ---------------------------------------------------------------------------
# WebSocket endpoint against a real database
# ---------------------------------------------------------------------------

@pytest.fixture
def live_app(tmp_path):
    """
    App with the real token lookup, backed by a file database.

    TestClient runs every request in its own event loop, so the async engine
    uses NullPool: each session opens its connection in the loop using it.
    Tables and direct edits go through a plain synchronous engine.
    """
    path = tmp_path / "sockets.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    dispatcher = NotificationDispatcher()

    async def live_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = live_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    def set_user(email, **values):
        with Session(sync_engine) as session:
            session.execute(update(User).where(User.email == email).values(**values))
            session.commit()

    yield SimpleNamespace(
        client=TestClient(app),
        dispatcher=dispatcher,
        factory=factory,
        set_user=set_user,
    )

    app.dependency_overrides.clear()
    sync_engine.dispose()


def sign_up(live_app, email: str) -> dict:
    response = live_app.client.post(
        "/auth/signup",
        json={"email": email, "password": "SecurePass123!", "username": email.split("@")[0]},
    )
    assert response.status_code == 201, response.text
    return response.json()


def assert_refused(live_app, token: str):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with live_app.client.websocket_connect(f"/ws?token={token}"):
            pass
    assert exc_info.value.code == 1008
    assert len(live_app.dispatcher.registry) == 0


class TestWebSocketWithRealTokens:

    def test_signup_token_registers_own_account(self, live_app):
        carol = sign_up(live_app, "carol@example.com")
        account_id = uuid.UUID(carol["account_id"])

        with live_app.client.websocket_connect(f"/ws?token={carol['token']}") as ws:
            assert ws.receive_json() == {
                "event": "connected",
                "data": {"account_id": carol["account_id"], "is_admin": False},
            }
            assert len(live_app.dispatcher.registry.for_account(account_id)) == 1
            assert live_app.dispatcher.registry.admins() == []

        assert len(live_app.dispatcher.registry) == 0

    def test_admin_set_follows_stored_role(self, live_app):
        """The token was issued to a customer; the database now says admin."""
        dave = sign_up(live_app, "dave@example.com")
        live_app.set_user("dave@example.com", role=UserRole.ADMIN)

        with live_app.client.websocket_connect(f"/ws?token={dave['token']}") as ws:
            assert ws.receive_json()["data"]["is_admin"] is True
            assert len(live_app.dispatcher.registry.admins()) == 1

    def test_expired_token_refused(self, live_app):
        erin = sign_up(live_app, "erin@example.com")
        token = issue_token(
            uuid.UUID(erin["user_id"]), "user", lifetime=timedelta(seconds=-1)
        )
        assert_refused(live_app, token)

    def test_token_signed_with_other_key_refused(self, live_app):
        frank = sign_up(live_app, "frank@example.com")
        forged = jwt.encode(
            {"sub": frank["user_id"], "role": "admin"},
            "some-other-secret",
            algorithm=settings.ALGORITHM,
        )
        assert_refused(live_app, forged)

    def test_token_for_unknown_user_refused(self, live_app):
        assert_refused(live_app, issue_token(uuid.uuid4(), "user"))

    def test_deactivated_user_refused(self, live_app):
        grace = sign_up(live_app, "grace@example.com")
        live_app.set_user("grace@example.com", is_active=False)
        assert_refused(live_app, grace["token"])

    def test_admin_socket_hears_new_transaction(self, live_app):
        customer = sign_up(live_app, "heidi@example.com")
        admin = sign_up(live_app, "ivan@example.com")
        live_app.set_user("ivan@example.com", role=UserRole.ADMIN)

        async def submit_deposit():
            async with live_app.factory() as db:
                await transaction_service.create_transaction(
                    db,
                    live_app.dispatcher,
                    uuid.UUID(customer["account_id"]),
                    "deposit",
                    2500,
                )
            await live_app.dispatcher.drain()

        with live_app.client.websocket_connect(f"/ws?token={admin['token']}") as ws:
            ws.receive_json()
            ws.portal.call(submit_deposit)
            message = ws.receive_json()

        assert message["event"] == "newTransaction"
        assert message["data"]["transaction"]["amount_cents"] == 2500
        assert message["data"]["transaction"]["status"] == "pending"
        assert message["data"]["transaction"]["account_id"] == customer["account_id"]
