"""
Notifications router — the WebSocket push channel.

Endpoint:
  WS /ws?token=<jwt> — Receive events for the caller's account (and, for
                       admins, the admin broadcast)

Browsers cannot set an Authorization header on a WebSocket handshake, so
the JWT travels as a query parameter. An unusable token closes the socket
with 1008 (policy violation) before it is accepted.

Once registered, the socket receives a "connected" message; after that
the channel is push-only. Anything the client sends is read and ignored;
reading is what notices a disconnect and unregisters the socket.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from bank_approvals.dependencies import get_socket_identity
from bank_approvals.models.user import UserRole
from bank_approvals.notifications import NotificationDispatcher, NotificationEvent, get_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    identity=Depends(get_socket_identity),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user, account = identity
    is_admin = user.role == UserRole.ADMIN

    await websocket.accept()
    dispatcher.registry.register(account.id, websocket, is_admin=is_admin)
    logger.info("Notification socket opened for %s (admin=%s)", user.username, is_admin)

    try:
        await websocket.send_json(
            {
                "event": NotificationEvent.CONNECTED.value,
                "data": {"account_id": str(account.id), "is_admin": is_admin},
            }
        )
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        dispatcher.registry.unregister(account.id, websocket)
        logger.info("Notification socket closed for %s", user.username)
