"""API routers."""

from brokerdesk.routers.appointments import router as appointments_router
from brokerdesk.routers.clients import router as clients_router
from brokerdesk.routers.notifications import router as notifications_router
from brokerdesk.routers.public import router as public_router
from brokerdesk.routers.websocket import router as websocket_router

__all__ = [
    "appointments_router",
    "clients_router",
    "notifications_router",
    "public_router",
    "websocket_router",
]
