"""
Scheduling coordinator.

Public entry point for creating, completing and rescheduling appointments.
Each operation is two single-row writes: the appointment first, then the
owning client's ``scheduling_status`` mirror. The store gives no cross-row
atomicity, so:

- create: a failed client write is compensated by deleting the new
  appointment; if that delete fails too, PartialSyncError is raised.
- update_status / reschedule: the appointment write is the source of truth;
  a failed client write raises PartialSyncError and the caller re-issues the
  sync step only (resync_client).

The mirror always reflects the client's most recently created appointment,
so touching an older appointment leaves the client row alone.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from brokerdesk.core import policies
from brokerdesk.core.errors import AuthorizationError, PartialSyncError, ValidationError
from brokerdesk.core.structured_logging import build_log_context
from brokerdesk.db.enums import (
    APPOINTMENT_OUTCOMES,
    SCHEDULING_MIRROR,
    AppointmentStatus,
    Role,
    SchedulingStatus,
)
from brokerdesk.db.gateway import DataGateway, eq
from brokerdesk.db.models import Appointment, Client
from brokerdesk.schemas.appointment import AppointmentCreate
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.services import appointment_service, client_service

logger = logging.getLogger(__name__)

CLIENTS = "clients"
APPOINTMENTS = "appointments"


# =============================================================================
# Mirror helpers
# =============================================================================


def latest_appointment(gateway: DataGateway, client_id: UUID) -> Appointment | None:
    """The client's most recently created appointment, if any."""
    rows = gateway.query(
        APPOINTMENTS, [eq("client_id", client_id)], order=["-created_at"], limit=1
    )
    return rows[0] if rows else None


def _write_mirror(gateway: DataGateway, client_id: UUID, value: SchedulingStatus | None) -> Client:
    return gateway.update(
        CLIENTS,
        client_id,
        {
            "scheduling_status": value.value if value is not None else None,
            "updated_at": datetime.now(timezone.utc),
        },
    )


def _sync_mirror(gateway: DataGateway, appointment: Appointment, actor: ActorSession) -> None:
    """Second write of update_status / reschedule."""
    if appointment.client_id is None:
        return

    expected = SCHEDULING_MIRROR[AppointmentStatus(appointment.status)]
    log_context = build_log_context(
        actor_id=actor.actor_id,
        role=actor.role,
        client_id=appointment.client_id,
        appointment_id=appointment.id,
    )

    try:
        latest = latest_appointment(gateway, appointment.client_id)
        if latest is None or latest.id != appointment.id:
            logger.debug("Appointment is not the client's latest, mirror unchanged", extra=log_context)
            return
        _write_mirror(gateway, appointment.client_id, expected)
    except Exception as e:
        logger.error(
            "Scheduling mirror write failed expected=%s: %s",
            expected.value,
            e,
            extra=log_context,
        )
        raise PartialSyncError(
            "Appointment saved but the client scheduling status was not updated",
            committed="appointment",
            failed="client",
            appointment_id=appointment.id,
            client_id=appointment.client_id,
            expected_status=expected.value,
        ) from e


# =============================================================================
# Operations
# =============================================================================


def _resolve_broker(data: AppointmentCreate, actor: ActorSession, client: Client | None) -> UUID:
    if actor.role == Role.BROKER:
        if data.broker_id is not None and data.broker_id != actor.actor_id:
            raise AuthorizationError("Brokers can only schedule appointments for themselves")
        return actor.actor_id

    broker_id = data.broker_id or (client.broker_id if client is not None else None)
    if broker_id is None:
        raise ValidationError("broker_id is required", field="broker_id")
    return broker_id


def create_appointment(gateway: DataGateway, data: AppointmentCreate, actor: ActorSession) -> Appointment:
    """Schedule a visit/task and mark the owning client as awaiting."""
    client = None
    if data.client_id is not None:
        client = client_service.get_client(gateway, data.client_id, actor)
    broker_id = _resolve_broker(data, actor, client)

    appointment = appointment_service.insert_appointment(
        gateway,
        broker_id=broker_id,
        scheduled_at=data.scheduled_at,
        title=data.title,
        description=data.description,
        client_id=data.client_id,
    )
    log_context = build_log_context(
        actor_id=actor.actor_id,
        role=actor.role,
        client_id=data.client_id,
        appointment_id=appointment.id,
    )
    logger.info("Appointment created", extra=log_context)

    if client is None:
        return appointment

    try:
        _write_mirror(gateway, client.id, SchedulingStatus.AWAITING)
    except Exception as e:
        logger.warning("Client mirror failed on create, removing appointment: %s", e, extra=log_context)
        try:
            gateway.delete(APPOINTMENTS, appointment.id)
        except Exception as compensation_error:
            logger.error("Appointment compensation failed", extra=log_context)
            raise PartialSyncError(
                "Appointment saved but the client scheduling status was not updated",
                committed="appointment",
                failed="client",
                appointment_id=appointment.id,
                client_id=client.id,
                expected_status=SchedulingStatus.AWAITING.value,
            ) from compensation_error
        raise

    return appointment


def update_status(
    gateway: DataGateway,
    appointment_id: UUID,
    new_status: AppointmentStatus | str,
    actor: ActorSession,
) -> Appointment:
    """
    Record the outcome of an appointment (completed / not completed).

    Going back to scheduled is only possible through reschedule().
    """
    policies.require(
        policies.can_update_appointment_status(actor.role),
        f"Role '{actor.role.value}' cannot update appointments",
    )
    try:
        target = AppointmentStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown appointment status '{new_status}'", field="status") from None
    if target not in APPOINTMENT_OUTCOMES:
        raise ValidationError("Use reschedule to set an appointment back to scheduled", field="status")

    appointment_service.get_appointment(gateway, appointment_id, actor)
    updated = appointment_service.write_status(gateway, appointment_id, target)
    logger.info(
        "Appointment status -> %s",
        target.value,
        extra=build_log_context(
            actor_id=actor.actor_id, role=actor.role, appointment_id=appointment_id
        ),
    )

    _sync_mirror(gateway, updated, actor)
    return updated


def reschedule(
    gateway: DataGateway,
    appointment_id: UUID,
    new_scheduled_at: datetime,
    actor: ActorSession,
) -> Appointment:
    """Move an appointment and put it back to scheduled. Idempotent."""
    policies.require(
        policies.can_update_appointment_status(actor.role),
        f"Role '{actor.role.value}' cannot reschedule appointments",
    )

    appointment_service.get_appointment(gateway, appointment_id, actor)
    updated = appointment_service.write_schedule(gateway, appointment_id, new_scheduled_at)
    logger.info(
        "Appointment rescheduled",
        extra=build_log_context(
            actor_id=actor.actor_id, role=actor.role, appointment_id=appointment_id
        ),
    )

    _sync_mirror(gateway, updated, actor)
    return updated


def resync_client(gateway: DataGateway, client_id: UUID, actor: ActorSession) -> Client:
    """
    Recompute the client's mirror from its latest appointment.

    The retry step after a PartialSyncError; also clears a stale mirror when
    the client has no appointments left.
    """
    client_service.get_client(gateway, client_id, actor)

    latest = latest_appointment(gateway, client_id)
    value = SCHEDULING_MIRROR[AppointmentStatus(latest.status)] if latest is not None else None
    client = _write_mirror(gateway, client_id, value)

    logger.info(
        "Client scheduling mirror resynced value=%s",
        value.value if value is not None else None,
        extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client_id),
    )
    return client
