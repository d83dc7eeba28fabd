"""Pydantic schemas for clients."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from brokerdesk.db.enums import ClientStatus
from brokerdesk.utils.normalization import normalize_email, normalize_name, normalize_phone


class _ContactFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=32)
    notes: str | None = Field(None, max_length=4000)
    origin: str | None = Field(None, max_length=64)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = normalize_name(v)
        if not cleaned:
            raise ValueError("Name cannot be blank")
        return cleaned

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return normalize_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Normalize phone to digits."""
        if v is None or v.strip() == "":
            return None
        return normalize_phone(v)  # Raises ValueError on invalid


class ClientIntake(_ContactFields):
    """Public contact form submission. Always lands as pending."""
    origin: str | None = Field("site", max_length=64)
    property_id: UUID | None = None


class ClientCreate(_ContactFields):
    """Staff-created client. broker_id is forced to the actor for brokers."""
    broker_id: UUID | None = None
    property_id: UUID | None = None


class ClientAssign(BaseModel):
    """Request to assign a pending client to a broker."""
    broker_id: UUID


class ClientStatusChange(BaseModel):
    """Request to move a client on the pipeline board."""
    status: ClientStatus


class ClientRead(BaseModel):
    """Full client response."""
    id: UUID
    name: str
    email: str | None
    phone: str | None
    notes: str | None
    status: ClientStatus
    broker_id: UUID | None
    scheduling_status: str | None
    origin: str | None
    property_id: UUID | None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ClientListResponse(BaseModel):
    items: list[ClientRead]
    total: int


class PipelineSummary(BaseModel):
    """
    Dashboard counts.

    by_status lists every working status in board order, zeros included.
    """
    total: int
    by_status: dict[str, int]
    by_scheduling_status: dict[str, int]
    by_origin: dict[str, int]
