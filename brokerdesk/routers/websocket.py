"""
WebSocket router for real-time notifications.

Authenticates via ?token=... or the session cookie, then keeps the
connection open. The server pushes:
- new pending clients (type: 'pending_client')
- pending count changes (type: 'pending_count')
- appointment changes (type: 'appointment_changed')

Pending messages go to administrator/developer connections only.
Appointment changes go to the owning broker and the back office.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from brokerdesk.core.deps import COOKIE_NAME
from brokerdesk.core.security import decode_session_token
from brokerdesk.core.websocket import manager
from brokerdesk.db.enums import ROLES_BACK_OFFICE, Role
from brokerdesk.schemas.notification import AppointmentChange

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _identity(token: str | None) -> tuple[UUID, Role] | None:
    if not token:
        return None
    try:
        payload = decode_session_token(token)
        role = payload.get("role", "")
        if not Role.has_value(role):
            return None
        return UUID(payload["sub"]), Role(role)
    except Exception:
        return None


@router.websocket("/notifications")
async def websocket_notifications(
    websocket: WebSocket,
    token: str | None = Query(None),
):
    """WebSocket endpoint for pending intake notifications."""
    identity = _identity(token) or _identity(websocket.cookies.get(COOKIE_NAME))
    if identity is None:
        await websocket.close(code=4001, reason="Authentication required")
        return

    actor_id, role = identity
    await manager.connect(websocket, actor_id, role)

    monitor = getattr(websocket.app.state, "pending_monitor", None)
    if monitor is not None and role in ROLES_BACK_OFFICE:
        await websocket.send_json(pending_count_message(monitor.count))

    try:
        # Keep connection alive, handle incoming messages (heartbeat/pings)
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        await manager.disconnect(websocket, actor_id)


def pending_client_message(client_id: UUID, count: int) -> dict:
    return {"type": "pending_client", "data": {"client_id": str(client_id), "count": count}}


def pending_count_message(count: int) -> dict:
    return {"type": "pending_count", "data": {"count": count}}


async def push_pending_client(client_id: UUID, count: int):
    """Alert connected back-office users about a new intake."""
    await manager.send_to_back_office(pending_client_message(client_id, count))


async def push_pending_count(count: int):
    await manager.send_to_back_office(pending_count_message(count))


def appointment_changed_message(change: AppointmentChange) -> dict:
    return {"type": "appointment_changed", "data": change.model_dump(mode="json")}


async def push_appointment_changed(change: AppointmentChange):
    """Let open client profiles refresh their appointment history."""
    await manager.send_to_broker_scope(change.broker_id, appointment_changed_message(change))
