"""
WebSocket connection manager for real-time notifications.

Tracks active connections per actor together with the actor's role, so
back-office broadcasts (pending intake alerts) reach only the roles that
are allowed to see them, and appointment changes reach only the owning
broker and the back office.
"""

from typing import Dict, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

from brokerdesk.core import policies
from brokerdesk.db.enums import ROLES_BACK_OFFICE, Role

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections per actor and role."""

    def __init__(self):
        # actor_id -> set of active WebSocket connections
        self._connections: Dict[UUID, Set[WebSocket]] = {}
        # actor_id -> role (for role-based broadcasts)
        self._roles: Dict[UUID, Role] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, actor_id: UUID, role: Role):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        async with self._lock:
            self._connections.setdefault(actor_id, set()).add(websocket)
            self._roles[actor_id] = role

    async def disconnect(self, websocket: WebSocket, actor_id: UUID):
        """Remove a WebSocket connection."""
        async with self._lock:
            if actor_id in self._connections:
                self._connections[actor_id].discard(websocket)
                if not self._connections[actor_id]:
                    del self._connections[actor_id]
                    self._roles.pop(actor_id, None)

    async def send_to_actor(self, actor_id: UUID, message: dict):
        """Send a message to all connections for a specific actor."""
        async with self._lock:
            connections = self._connections.get(actor_id, set()).copy()

        if not connections:
            return

        data = json.dumps(message, default=str)
        closed = []

        for ws in connections:
            try:
                await ws.send_text(data)
            except Exception:
                # Connection closed or errored
                closed.append(ws)

        if closed:
            logger.debug("Dropping %d closed websocket(s) for actor %s", len(closed), actor_id)
            async with self._lock:
                if actor_id in self._connections:
                    for ws in closed:
                        self._connections[actor_id].discard(ws)
                    if not self._connections[actor_id]:
                        del self._connections[actor_id]
                        self._roles.pop(actor_id, None)

    async def send_to_roles(self, roles: set[Role], message: dict):
        """Send a message to every connected actor holding one of the roles."""
        async with self._lock:
            actor_ids = [aid for aid, role in self._roles.items() if role in roles]

        for actor_id in actor_ids:
            await self.send_to_actor(actor_id, message)

    async def send_to_back_office(self, message: dict):
        await self.send_to_roles(ROLES_BACK_OFFICE, message)

    async def send_to_broker_scope(self, broker_id: UUID, message: dict):
        """Send to every connected actor allowed to see rows owned by broker_id."""
        async with self._lock:
            actor_ids = [
                aid
                for aid, role in self._roles.items()
                if policies.can_access_broker_scope(role, aid, broker_id)
            ]

        for actor_id in actor_ids:
            await self.send_to_actor(actor_id, message)

    def get_connected_count(self, actor_id: UUID) -> int:
        """Get the number of active connections for an actor."""
        return len(self._connections.get(actor_id, set()))

    def get_total_connections(self) -> int:
        """Get total number of active connections across all actors."""
        return sum(len(conns) for conns in self._connections.values())


# Singleton instance
manager = ConnectionManager()
