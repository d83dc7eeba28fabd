"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from brokerdesk.db.base import Base
from brokerdesk.db.enums import AppointmentStatus, ClientStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(Base):
    """
    A brokerage client moving through the sales pipeline.

    Invariants:
    - status = pending  <=>  broker_id is NULL
    - scheduling_status mirrors the latest appointment (NULL if none)
    """

    __tablename__ = "clients"
    __table_args__ = (
        Index("idx_clients_status", "status"),
        Index("idx_clients_broker_status", "broker_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(32), default=ClientStatus.PENDING.value, nullable=False
    )
    broker_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    # Denormalized for list screens; written only by the scheduling coordinator
    scheduling_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Acquisition channel ("site", "referral", ...). Reporting only.
    origin: Mapped[str | None] = mapped_column(String(64), nullable=True)
    # Listing the public intake form was submitted from
    property_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )


class Appointment(Base):
    """
    A scheduled visit or task, usually linked to a client.

    Administrative tasks may have no client. The overdue/upcoming class is
    derived at read time and never stored.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_status_scheduled", "status", "scheduled_at"),
        Index("idx_appointments_broker_scheduled", "broker_id", "scheduled_at"),
        Index("idx_appointments_client_created", "client_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=True
    )
    broker_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), default=AppointmentStatus.SCHEDULED.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=_utcnow, onupdate=_utcnow, nullable=False
    )


class ClientDocument(Base):
    """Document metadata attached to a client. File storage lives elsewhere."""

    __tablename__ = "client_documents"
    __table_args__ = (Index("idx_client_documents_client", "client_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=_utcnow, nullable=False)
