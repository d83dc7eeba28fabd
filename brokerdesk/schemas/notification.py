"""Pydantic schemas for websocket notifications."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from brokerdesk.db.enums import AppointmentStatus, ChangeEventType


class PendingCountResponse(BaseModel):
    """Pending intake badge count (always 0 for brokers)."""
    count: int


class PendingClientAlert(BaseModel):
    """Pushed when a new pending client arrives."""
    client_id: UUID
    count: int


class AppointmentChange(BaseModel):
    """
    Pushed when an appointment is created, updated or deleted.

    Client profile screens filter on client_id and refetch the history.
    For DELETE the fields describe the removed row.
    """
    event: ChangeEventType
    appointment_id: UUID
    client_id: UUID | None
    broker_id: UUID
    status: AppointmentStatus
    scheduled_at: datetime
