"""
Appointment service: time classification, reads and single-row writes.

The urgency class (upcoming / due today / overdue) is computed on every read
from (status, scheduled_at, now) and never stored. Every function that needs
the current time takes ``now`` as an argument.

Writes here touch the appointments table only. Keeping the owning client's
scheduling mirror in step is the job of scheduling_service, which is the
public entry point for create / update status / reschedule.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, TypeVar
from uuid import UUID

from brokerdesk.core import policies
from brokerdesk.core.errors import AuthorizationError, NotFoundError, TransientError
from brokerdesk.core.structured_logging import build_log_context
from brokerdesk.db.enums import AppointmentStatus, Role, TemporalClass
from brokerdesk.db.gateway import DataGateway, Filter, eq, gte, lt, lte
from brokerdesk.db.models import Appointment
from brokerdesk.db.types import as_utc
from brokerdesk.schemas.appointment import AppointmentRead
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.services import client_service

logger = logging.getLogger(__name__)

APPOINTMENTS = "appointments"

T = TypeVar("T")


# =============================================================================
# Classification
# =============================================================================


def classify(appointment: Appointment, now: datetime) -> TemporalClass:
    """
    Urgency class of an appointment at ``now``.

    - OVERDUE: still scheduled and scheduled_at < now
    - DUE_TODAY: still scheduled, same calendar day as now and not before it
      (a tie at exactly ``now`` is due, not overdue)
    - UPCOMING: everything else, including every completed/not-completed one

    The calendar day is taken in ``now``'s timezone; pass a naive ``now``
    only if it is UTC.
    """
    if appointment.status != AppointmentStatus.SCHEDULED.value:
        return TemporalClass.UPCOMING

    scheduled_at = as_utc(appointment.scheduled_at)
    now_utc = as_utc(now)
    if scheduled_at < now_utc:
        return TemporalClass.OVERDUE

    local_now = now if now.tzinfo is not None else now_utc
    if scheduled_at.astimezone(local_now.tzinfo).date() == local_now.date():
        return TemporalClass.DUE_TODAY
    return TemporalClass.UPCOMING


def to_read(appointment: Appointment, now: datetime) -> AppointmentRead:
    """Response projection with the derived class attached."""
    return AppointmentRead(
        id=appointment.id,
        client_id=appointment.client_id,
        broker_id=appointment.broker_id,
        title=appointment.title,
        description=appointment.description,
        scheduled_at=appointment.scheduled_at,
        status=AppointmentStatus(appointment.status),
        temporal_class=classify(appointment, now),
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def retry_read(fn: Callable[[], T], attempts: int) -> T:
    """
    Run a pure read, retrying on TransientError.

    Only for reads: re-running a write could duplicate an appointment.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts):
        try:
            return fn()
        except TransientError:
            logger.warning("Transient read failure, retrying (%d/%d)", attempt, attempts)
    return fn()


# =============================================================================
# Single-row writes (called by scheduling_service)
# =============================================================================


def insert_appointment(
    gateway: DataGateway,
    *,
    broker_id: UUID,
    scheduled_at: datetime,
    title: str,
    description: str | None = None,
    client_id: UUID | None = None,
) -> Appointment:
    """Insert a new appointment; status always starts as scheduled."""
    return gateway.insert(
        APPOINTMENTS,
        {
            "client_id": client_id,
            "broker_id": broker_id,
            "scheduled_at": scheduled_at,
            "title": title,
            "description": description,
            "status": AppointmentStatus.SCHEDULED.value,
        },
    )


def write_status(gateway: DataGateway, appointment_id: UUID, status: AppointmentStatus) -> Appointment:
    return gateway.update(APPOINTMENTS, appointment_id, {"status": status.value})


def write_schedule(gateway: DataGateway, appointment_id: UUID, scheduled_at: datetime) -> Appointment:
    """Move the appointment and reset it to scheduled."""
    return gateway.update(
        APPOINTMENTS,
        appointment_id,
        {"scheduled_at": scheduled_at, "status": AppointmentStatus.SCHEDULED.value},
    )


# =============================================================================
# Reads
# =============================================================================


def get_appointment(gateway: DataGateway, appointment_id: UUID, actor: ActorSession) -> Appointment:
    appointment = gateway.get(APPOINTMENTS, appointment_id)
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    if not policies.can_access_broker_scope(actor.role, actor.actor_id, appointment.broker_id):
        logger.info(
            "Appointment access denied",
            extra=build_log_context(
                actor_id=actor.actor_id, role=actor.role, appointment_id=appointment_id
            ),
        )
        raise AuthorizationError("Appointment is not assigned to you")
    return appointment


def _broker_filter(broker_id: UUID | None) -> list[Filter]:
    return [eq("broker_id", broker_id)] if broker_id is not None else []


def list_overdue(gateway: DataGateway, now: datetime, broker_id: UUID | None = None) -> list[Appointment]:
    """Scheduled appointments whose time has passed, oldest first."""
    filters = [
        eq("status", AppointmentStatus.SCHEDULED.value),
        lt("scheduled_at", now),
        *_broker_filter(broker_id),
    ]
    return gateway.query(APPOINTMENTS, filters, order=["scheduled_at"])


def list_upcoming(
    gateway: DataGateway,
    now: datetime,
    horizon_days: int,
    broker_id: UUID | None = None,
) -> list[Appointment]:
    """Scheduled appointments in [now, now + horizon_days], soonest first."""
    filters = [
        eq("status", AppointmentStatus.SCHEDULED.value),
        gte("scheduled_at", now),
        lte("scheduled_at", now + timedelta(days=horizon_days)),
        *_broker_filter(broker_id),
    ]
    return gateway.query(APPOINTMENTS, filters, order=["scheduled_at"])


def list_in_range(
    gateway: DataGateway,
    start: datetime,
    end: datetime,
    broker_id: UUID | None = None,
) -> list[Appointment]:
    """Calendar view: every appointment in [start, end), any status."""
    filters = [gte("scheduled_at", start), lt("scheduled_at", end), *_broker_filter(broker_id)]
    return gateway.query(APPOINTMENTS, filters, order=["scheduled_at"])


def list_client_history(gateway: DataGateway, client_id: UUID, actor: ActorSession) -> list[Appointment]:
    """All appointments of a client, latest scheduled first."""
    # Scope is checked on the client row so brokers cannot read other clients
    client_service.get_client(gateway, client_id, actor)
    return gateway.query(
        APPOINTMENTS, [eq("client_id", client_id)], order=["-scheduled_at", "-created_at"]
    )


def scoped_broker_id(actor: ActorSession, requested: UUID | None) -> UUID | None:
    """Broker filter for list endpoints: brokers always see only their own."""
    if actor.role == Role.BROKER:
        return actor.actor_id
    return requested
