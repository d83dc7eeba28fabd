"""Tests for the notifications websocket and the connection manager."""

import json
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from brokerdesk.core.security import create_session_token
from brokerdesk.core.websocket import ConnectionManager
from brokerdesk.core.websocket import manager as shared_manager
from brokerdesk.db.enums import AppointmentStatus, ChangeEventType, Role
from brokerdesk.main import app
from brokerdesk.routers.websocket import pending_client_message, push_appointment_changed
from brokerdesk.schemas.notification import AppointmentChange


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self):
        pass

    async def send_text(self, data: str):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(data))


@pytest.fixture
def pending_monitor():
    class StubMonitor:
        count = 3

    app.state.pending_monitor = StubMonitor()
    yield app.state.pending_monitor
    app.state.pending_monitor = None


def test_rejects_missing_token():
    client = TestClient(app)

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws/notifications") as ws:
            ws.receive_text()

    assert exc.value.code == 4001


def test_back_office_gets_initial_count_and_pong(pending_monitor):
    client = TestClient(app)
    token = create_session_token(uuid.uuid4(), Role.ADMINISTRATOR.value)

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        assert ws.receive_json() == {"type": "pending_count", "data": {"count": 3}}
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_broker_gets_no_initial_count(pending_monitor):
    client = TestClient(app)
    token = create_session_token(uuid.uuid4(), Role.BROKER.value)

    with client.websocket_connect(f"/ws/notifications?token={token}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


@pytest.mark.asyncio
async def test_back_office_broadcast_skips_brokers():
    manager = ConnectionManager()
    admin_ws, dev_ws, broker_ws = FakeSocket(), FakeSocket(), FakeSocket()
    await manager.connect(admin_ws, uuid.uuid4(), Role.ADMINISTRATOR)
    await manager.connect(dev_ws, uuid.uuid4(), Role.DEVELOPER)
    await manager.connect(broker_ws, uuid.uuid4(), Role.BROKER)

    client_id = uuid.uuid4()
    await manager.send_to_back_office(pending_client_message(client_id, 1))

    expected = {"type": "pending_client", "data": {"client_id": str(client_id), "count": 1}}
    assert admin_ws.sent == [expected]
    assert dev_ws.sent == [expected]
    assert broker_ws.sent == []


@pytest.mark.asyncio
async def test_closed_sockets_are_dropped():
    manager = ConnectionManager()
    actor_id = uuid.uuid4()
    await manager.connect(FakeSocket(fail=True), actor_id, Role.ADMINISTRATOR)
    assert manager.get_connected_count(actor_id) == 1

    await manager.send_to_actor(actor_id, {"type": "pending_count", "data": {"count": 0}})

    assert manager.get_connected_count(actor_id) == 0
    assert manager.get_total_connections() == 0


@pytest.mark.asyncio
async def test_broker_scope_send_reaches_owner_and_back_office():
    manager = ConnectionManager()
    owner_id = uuid.uuid4()
    owner_ws, other_ws, admin_ws = FakeSocket(), FakeSocket(), FakeSocket()
    await manager.connect(owner_ws, owner_id, Role.BROKER)
    await manager.connect(other_ws, uuid.uuid4(), Role.BROKER)
    await manager.connect(admin_ws, uuid.uuid4(), Role.ADMINISTRATOR)

    await manager.send_to_broker_scope(owner_id, {"type": "appointment_changed", "data": {}})

    assert len(owner_ws.sent) == 1
    assert len(admin_ws.sent) == 1
    assert other_ws.sent == []


@pytest.mark.asyncio
async def test_push_appointment_changed_message():
    broker_id = uuid.uuid4()
    client_id = uuid.uuid4()
    appointment_id = uuid.uuid4()
    owner_ws, other_ws = FakeSocket(), FakeSocket()
    other_id = uuid.uuid4()
    await shared_manager.connect(owner_ws, broker_id, Role.BROKER)
    await shared_manager.connect(other_ws, other_id, Role.BROKER)

    try:
        await push_appointment_changed(
            AppointmentChange(
                event=ChangeEventType.UPDATE,
                appointment_id=appointment_id,
                client_id=client_id,
                broker_id=broker_id,
                status=AppointmentStatus.COMPLETED,
                scheduled_at=datetime(2025, 3, 10, 14, 0, tzinfo=timezone.utc),
            )
        )
    finally:
        await shared_manager.disconnect(owner_ws, broker_id)
        await shared_manager.disconnect(other_ws, other_id)

    assert other_ws.sent == []
    message = owner_ws.sent[0]
    assert message["type"] == "appointment_changed"
    assert message["data"]["event"] == "UPDATE"
    assert message["data"]["client_id"] == str(client_id)
    assert message["data"]["appointment_id"] == str(appointment_id)
    assert message["data"]["status"] == "completed"
