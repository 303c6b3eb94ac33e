"""
Notification Dispatcher — best-effort push of outcome events.

The transactional core hands events to the dispatcher only after its unit of
work has committed. Delivery is fire-and-forget: every send runs in a
background task, a failing socket is logged and dropped, and nothing ever
propagates back into the caller. A lost notification never undoes or delays
a state transition; clients re-query by id when they need certainty.

Routing:
  ConnectionRegistry maps account ids to live connections (several per
  account: multiple tabs/devices) and keeps a separate set of admin
  connections. It belongs to the dispatcher, not to the database, and is
  empty after a restart.

Message envelope sent to every connection:
    {"event": "<kind>", "data": {...}}
"""

import asyncio
import enum
import logging
import uuid
from collections import defaultdict
from typing import Any, Protocol

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    # handshake acknowledgement, sent once per socket
    CONNECTED = "connected"
    # to the owning account
    TRANSACTION_UPDATE = "transactionUpdate"
    ACCOUNT_STATUS_CHANGE = "accountStatusChange"
    # to admins
    NEW_TRANSACTION = "newTransaction"
    TRANSACTION_PROCESSED = "transactionProcessed"
    TRANSACTION_CANCELLED = "transactionCancelled"


class Connection(Protocol):
    """Anything that can push a JSON message (starlette WebSocket, test fakes)."""

    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """Live connections keyed by account id, plus the admin broadcast set."""

    def __init__(self):
        self._by_account: dict[uuid.UUID, set[Connection]] = defaultdict(set)
        self._admins: set[Connection] = set()

    def register(
        self,
        account_id: uuid.UUID,
        connection: Connection,
        is_admin: bool = False,
    ) -> None:
        self._by_account[account_id].add(connection)
        if is_admin:
            self._admins.add(connection)

    def unregister(self, account_id: uuid.UUID, connection: Connection) -> None:
        connections = self._by_account.get(account_id)
        if connections is not None:
            connections.discard(connection)
            if not connections:
                del self._by_account[account_id]
        self._admins.discard(connection)

    def discard(self, connection: Connection) -> None:
        """Forget a connection wherever it is registered."""
        for account_id in [a for a, conns in self._by_account.items() if connection in conns]:
            self.unregister(account_id, connection)
        self._admins.discard(connection)

    def for_account(self, account_id: uuid.UUID) -> list[Connection]:
        return list(self._by_account.get(account_id, ()))

    def admins(self) -> list[Connection]:
        return list(self._admins)

    def __len__(self) -> int:
        return sum(len(conns) for conns in self._by_account.values())


class NotificationDispatcher:
    """Fire-and-forget fan-out of events to registered connections."""

    def __init__(self, registry: ConnectionRegistry | None = None):
        self.registry = registry or ConnectionRegistry()
        self._tasks: set[asyncio.Task] = set()

    def notify_account(
        self,
        account_id: uuid.UUID,
        event: NotificationEvent,
        payload: dict,
    ) -> None:
        """Push an event to every connection of one account."""
        self._dispatch(self.registry.for_account(account_id), event, payload)

    def notify_admins(self, event: NotificationEvent, payload: dict) -> None:
        """Push an event to every connected admin."""
        self._dispatch(self.registry.admins(), event, payload)

    def _dispatch(
        self,
        connections: list[Connection],
        event: NotificationEvent,
        payload: dict,
    ) -> None:
        if not connections:
            logger.debug("No listeners for %s", event.value)
            return

        try:
            message = {"event": event.value, "data": jsonable_encoder(payload)}
            loop = asyncio.get_running_loop()
        except Exception:
            logger.warning("Dropping %s notification", event.value, exc_info=True)
            return

        task = loop.create_task(self._deliver(connections, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, connections: list[Connection], message: dict) -> None:
        for connection in connections:
            try:
                await connection.send_json(message)
            except Exception:
                logger.warning(
                    "Failed to deliver %s, dropping connection",
                    message["event"],
                    exc_info=True,
                )
                self.registry.discard(connection)

    async def drain(self) -> None:
        """Wait for outstanding deliveries (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Process-wide dispatcher, living as long as the application
dispatcher = NotificationDispatcher()


def get_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    return dispatcher
