"""Pydantic schemas for API request/response models."""

from brokerdesk.schemas.auth import ActorSession, TokenPayload
from brokerdesk.schemas.client import (
    ClientAssign,
    ClientCreate,
    ClientIntake,
    ClientListResponse,
    ClientRead,
    ClientStatusChange,
    PipelineSummary,
)
from brokerdesk.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentStatusChange,
)
from brokerdesk.schemas.notification import (
    AppointmentChange,
    PendingClientAlert,
    PendingCountResponse,
)

__all__ = [
    # Auth
    "ActorSession",
    "TokenPayload",
    # Clients
    "ClientAssign",
    "ClientCreate",
    "ClientIntake",
    "ClientListResponse",
    "ClientRead",
    "ClientStatusChange",
    "PipelineSummary",
    # Appointments
    "AppointmentCreate",
    "AppointmentListResponse",
    "AppointmentRead",
    "AppointmentReschedule",
    "AppointmentStatusChange",
    # Notifications
    "AppointmentChange",
    "PendingClientAlert",
    "PendingCountResponse",
]
