"""
Client pipeline service.

Owns the client lifecycle: public intake (pending), broker assignment,
board status moves and the delete cascade. Authorization is checked through
core.policies before any write; a rejected call leaves persisted state
unchanged.
"""

import logging
from collections import Counter
from uuid import UUID

from brokerdesk.core import policies
from brokerdesk.core.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from brokerdesk.core.structured_logging import build_log_context
from brokerdesk.db.enums import WORKING_STATUSES, ClientStatus, Role
from brokerdesk.db.gateway import DataGateway, Filter, eq
from brokerdesk.db.models import Client
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.schemas.client import ClientCreate, ClientIntake

logger = logging.getLogger(__name__)

CLIENTS = "clients"
APPOINTMENTS = "appointments"
DOCUMENTS = "client_documents"


def _contact_record(data: ClientIntake | ClientCreate) -> dict:
    return {
        "name": data.name,
        "email": data.email,
        "phone": data.phone,
        "notes": data.notes,
        "origin": data.origin,
        "property_id": data.property_id,
    }


def _load(gateway: DataGateway, client_id: UUID) -> Client:
    client = gateway.get(CLIENTS, client_id)
    if client is None:
        raise NotFoundError(f"Client {client_id} not found")
    return client


def _check_scope(client: Client, actor: ActorSession) -> None:
    if not policies.can_access_broker_scope(actor.role, actor.actor_id, client.broker_id):
        logger.info(
            "Client access denied",
            extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client.id),
        )
        raise AuthorizationError("Client is not assigned to you")


# =============================================================================
# Creation
# =============================================================================


def create_pending_client(gateway: DataGateway, data: ClientIntake) -> Client:
    """
    Public intake: anonymous contact form submission.

    Status is always pending with no broker, whatever the caller sent.
    """
    record = _contact_record(data)
    record.update(status=ClientStatus.PENDING.value, broker_id=None)
    client = gateway.insert(CLIENTS, record)
    logger.info("Pending client created", extra=build_log_context(client_id=client.id))
    return client


def create_staff_client(gateway: DataGateway, data: ClientCreate, actor: ActorSession) -> Client:
    """
    Staff-created client, already assigned.

    A broker always creates clients for itself; back office must name the
    broker.
    """
    if actor.role == Role.BROKER:
        broker_id = actor.actor_id
    else:
        broker_id = data.broker_id
        if broker_id is None:
            raise ValidationError("broker_id is required", field="broker_id")

    record = _contact_record(data)
    record.update(status=ClientStatus.NEW.value, broker_id=broker_id)
    client = gateway.insert(CLIENTS, record)
    logger.info(
        "Client created",
        extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client.id),
    )
    return client


# =============================================================================
# Pipeline moves
# =============================================================================


def assign_broker(
    gateway: DataGateway,
    client_id: UUID,
    broker_id: UUID,
    actor: ActorSession,
) -> Client:
    """Move a pending client into the pipeline under a broker."""
    policies.require(
        policies.can_assign_broker(actor.role),
        f"Role '{actor.role.value}' cannot assign brokers",
    )

    client = _load(gateway, client_id)
    if client.status != ClientStatus.PENDING.value:
        raise InvalidTransitionError(
            current=client.status,
            attempted=ClientStatus.NEW.value,
            message=f"Client is already assigned (status '{client.status}')",
        )

    updated = gateway.update(
        CLIENTS,
        client_id,
        {"status": ClientStatus.NEW.value, "broker_id": broker_id},
    )
    logger.info(
        "Client assigned broker=%s",
        broker_id,
        extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client_id),
    )
    return updated


def set_status(
    gateway: DataGateway,
    client_id: UUID,
    new_status: ClientStatus | str,
    actor: ActorSession,
) -> Client:
    """
    Move a client between board columns.

    Any working status may move to any other; pending is reachable only
    through intake.
    """
    try:
        target = ClientStatus(new_status)
    except ValueError:
        raise ValidationError(f"Unknown client status '{new_status}'", field="status") from None
    if target == ClientStatus.PENDING:
        raise ValidationError("Clients cannot be moved back to pending", field="status")

    client = _load(gateway, client_id)
    _check_scope(client, actor)

    if client.status == ClientStatus.PENDING.value:
        raise InvalidTransitionError(
            current=client.status,
            attempted=target.value,
            message="Pending clients must be assigned to a broker first",
        )

    if not policies.can_mutate_pipeline_status(actor.role, client.status):
        logger.info(
            "Locked stage move denied from=%s to=%s",
            client.status,
            target.value,
            extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client_id),
        )
        raise AuthorizationError(f"Client in '{client.status}' can only be moved by the back office")

    previous = client.status
    updated = gateway.update(CLIENTS, client_id, {"status": target.value})
    logger.info(
        "Client status %s -> %s",
        previous,
        target.value,
        extra=build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client_id),
    )
    return updated


def delete_client(gateway: DataGateway, client_id: UUID, actor: ActorSession) -> None:
    """
    Delete a client with its documents and appointments.

    Children go first so no orphan rows are left behind. A failing step
    aborts the cascade and propagates; rows already deleted stay deleted.
    """
    policies.require(
        policies.can_delete_client(actor.role),
        f"Role '{actor.role.value}' cannot delete clients",
    )
    _load(gateway, client_id)

    log_context = build_log_context(actor_id=actor.actor_id, role=actor.role, client_id=client_id)
    try:
        for document in gateway.query(DOCUMENTS, [eq("client_id", client_id)]):
            gateway.delete(DOCUMENTS, document.id)
        for appointment in gateway.query(APPOINTMENTS, [eq("client_id", client_id)]):
            gateway.delete(APPOINTMENTS, appointment.id)
        gateway.delete(CLIENTS, client_id)
    except Exception:
        logger.exception("Client delete cascade aborted", extra=log_context)
        raise

    logger.info("Client deleted", extra=log_context)


# =============================================================================
# Reads
# =============================================================================


def get_client(gateway: DataGateway, client_id: UUID, actor: ActorSession) -> Client:
    client = _load(gateway, client_id)
    _check_scope(client, actor)
    return client


def _scope_filters(
    actor: ActorSession,
    status: ClientStatus | None = None,
    broker_id: UUID | None = None,
    origin: str | None = None,
) -> list[Filter]:
    filters: list[Filter] = []
    if actor.role == Role.BROKER:
        # Brokers never see other brokers' clients or the unassigned queue
        filters.append(eq("broker_id", actor.actor_id))
    elif broker_id is not None:
        filters.append(eq("broker_id", broker_id))

    if status is not None:
        filters.append(eq("status", ClientStatus(status).value))
    if origin:
        filters.append(eq("origin", origin))
    return filters


def list_clients(
    gateway: DataGateway,
    actor: ActorSession,
    status: ClientStatus | None = None,
    broker_id: UUID | None = None,
    origin: str | None = None,
) -> list[Client]:
    """Clients visible to the actor, newest first."""
    filters = _scope_filters(actor, status, broker_id, origin)
    return gateway.query(CLIENTS, filters, order=["-created_at"])


def pipeline_summary(
    gateway: DataGateway,
    actor: ActorSession,
    broker_id: UUID | None = None,
) -> dict:
    """
    Dashboard counts by pipeline status, scheduling mirror and origin.

    Pending clients count only for the back office (brokers cannot see them).
    """
    clients = gateway.query(CLIENTS, _scope_filters(actor, broker_id=broker_id))

    by_status = Counter(c.status for c in clients)
    statuses = list(WORKING_STATUSES)
    if actor.role != Role.BROKER:
        statuses.append(ClientStatus.PENDING)

    return {
        "total": len(clients),
        "by_status": {s.value: by_status.get(s.value, 0) for s in statuses},
        "by_scheduling_status": dict(
            Counter(c.scheduling_status for c in clients if c.scheduling_status)
        ),
        "by_origin": dict(Counter(c.origin or "unknown" for c in clients)),
    }
