"""Pydantic schemas for appointments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from brokerdesk.core.config import settings
from brokerdesk.db.enums import AppointmentStatus, TemporalClass


def _localize(value: datetime) -> datetime:
    # Naive form values are wall-clock time at the brokerage
    if value.tzinfo is None:
        return value.replace(tzinfo=settings.business_tz)
    return value


class AppointmentCreate(BaseModel):
    """
    Request to schedule a visit or task.

    broker_id defaults to the acting broker, or to the client's broker when
    a back-office user schedules on a broker's behalf.
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    scheduled_at: datetime
    client_id: UUID | None = None
    broker_id: UUID | None = None

    @field_validator("scheduled_at")
    @classmethod
    def validate_scheduled_at(cls, v: datetime) -> datetime:
        return _localize(v)


class AppointmentStatusChange(BaseModel):
    """Record the outcome of a visit."""
    status: AppointmentStatus


class AppointmentReschedule(BaseModel):
    scheduled_at: datetime

    @field_validator("scheduled_at")
    @classmethod
    def validate_scheduled_at(cls, v: datetime) -> datetime:
        return _localize(v)


class AppointmentRead(BaseModel):
    """Appointment response with the read-time urgency class attached."""
    id: UUID
    client_id: UUID | None
    broker_id: UUID
    title: str
    description: str | None
    scheduled_at: datetime
    status: AppointmentStatus
    temporal_class: TemporalClass

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    items: list[AppointmentRead]
    total: int
