"""Clients router - pipeline board, assignment and client profile endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from brokerdesk.core.config import settings
from brokerdesk.core.deps import get_current_session, get_gateway, get_now, require_csrf_header
from brokerdesk.db.enums import ClientStatus
from brokerdesk.db.gateway import DataGateway
from brokerdesk.schemas.appointment import AppointmentListResponse
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.schemas.client import (
    ClientAssign,
    ClientCreate,
    ClientListResponse,
    ClientRead,
    ClientStatusChange,
    PipelineSummary,
)
from brokerdesk.services import appointment_service, client_service, scheduling_service

router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=ClientListResponse)
def list_clients(
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    status: ClientStatus | None = None,
    broker_id: UUID | None = Query(None, description="Back office only; ignored for brokers"),
    origin: str | None = None,
):
    """List clients visible to the caller, newest first."""
    clients = appointment_service.retry_read(
        lambda: client_service.list_clients(
            gateway, session, status=status, broker_id=broker_id, origin=origin
        ),
        settings.READ_RETRY_ATTEMPTS,
    )
    return ClientListResponse(
        items=[ClientRead.model_validate(c) for c in clients],
        total=len(clients),
    )


@router.get("/summary", response_model=PipelineSummary)
def get_summary(
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    broker_id: UUID | None = None,
):
    """Dashboard counts by status, scheduling mirror and origin."""
    summary = appointment_service.retry_read(
        lambda: client_service.pipeline_summary(gateway, session, broker_id=broker_id),
        settings.READ_RETRY_ATTEMPTS,
    )
    return PipelineSummary(**summary)


@router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: UUID,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    return client_service.get_client(gateway, client_id, session)


@router.get("/{client_id}/appointments", response_model=AppointmentListResponse)
def get_client_appointments(
    client_id: UUID,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Appointment history of a client, latest scheduled first."""
    appointments = appointment_service.list_client_history(gateway, client_id, session)
    return AppointmentListResponse(
        items=[appointment_service.to_read(a, now) for a in appointments],
        total=len(appointments),
    )


@router.post(
    "",
    response_model=ClientRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_client(
    data: ClientCreate,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    """Create an assigned client (brokers always create for themselves)."""
    return client_service.create_staff_client(gateway, data, session)


@router.post(
    "/{client_id}/assign",
    response_model=ClientRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_client(
    client_id: UUID,
    data: ClientAssign,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    """Assign a pending client to a broker (back office only)."""
    return client_service.assign_broker(gateway, client_id, data.broker_id, session)


@router.patch(
    "/{client_id}/status",
    response_model=ClientRead,
    dependencies=[Depends(require_csrf_header)],
)
def change_status(
    client_id: UUID,
    data: ClientStatusChange,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    """Move a client to another board column."""
    return client_service.set_status(gateway, client_id, data.status, session)


@router.delete(
    "/{client_id}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_client(
    client_id: UUID,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    """Delete a client with its documents and appointments (back office only)."""
    client_service.delete_client(gateway, client_id, session)
    return None


@router.post(
    "/{client_id}/resync-scheduling",
    response_model=ClientRead,
    dependencies=[Depends(require_csrf_header)],
)
def resync_scheduling(
    client_id: UUID,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
):
    """Re-issue the scheduling mirror write after a partial sync failure."""
    return scheduling_service.resync_client(gateway, client_id, session)
