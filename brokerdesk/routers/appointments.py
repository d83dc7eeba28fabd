"""Appointments router - scheduling, outcomes, reschedule and urgency lists."""

from datetime import datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from brokerdesk.core.config import settings
from brokerdesk.core.deps import get_current_session, get_gateway, get_now, require_csrf_header
from brokerdesk.core.errors import ValidationError
from brokerdesk.db.gateway import DataGateway
from brokerdesk.schemas.appointment import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentStatusChange,
)
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.services import appointment_service, scheduling_service

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _list_response(appointments, now: datetime) -> AppointmentListResponse:
    return AppointmentListResponse(
        items=[appointment_service.to_read(a, now) for a in appointments],
        total=len(appointments),
    )


@router.get("/overdue", response_model=AppointmentListResponse)
def list_overdue(
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
    broker_id: UUID | None = None,
):
    """Scheduled appointments already past due, oldest first."""
    scoped = appointment_service.scoped_broker_id(session, broker_id)
    appointments = appointment_service.retry_read(
        lambda: appointment_service.list_overdue(gateway, now, broker_id=scoped),
        settings.READ_RETRY_ATTEMPTS,
    )
    return _list_response(appointments, now)


@router.get("/upcoming", response_model=AppointmentListResponse)
def list_upcoming(
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
    broker_id: UUID | None = None,
    horizon_days: int | None = Query(None, ge=1, le=365),
):
    """Scheduled appointments from now until the horizon, soonest first."""
    scoped = appointment_service.scoped_broker_id(session, broker_id)
    horizon = horizon_days or settings.UPCOMING_HORIZON_DAYS
    appointments = appointment_service.retry_read(
        lambda: appointment_service.list_upcoming(gateway, now, horizon, broker_id=scoped),
        settings.READ_RETRY_ATTEMPTS,
    )
    return _list_response(appointments, now)


@router.get("/calendar", response_model=AppointmentListResponse)
def list_calendar(
    start: datetime,
    end: datetime | None = None,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
    broker_id: UUID | None = None,
):
    """Every appointment in [start, end); end defaults to start + 7 days."""
    if start.tzinfo is None:
        start = start.replace(tzinfo=settings.business_tz)
    if end is None:
        end = start + timedelta(days=7)
    elif end.tzinfo is None:
        end = end.replace(tzinfo=settings.business_tz)
    if end <= start:
        raise ValidationError("end must be after start", field="end")

    scoped = appointment_service.scoped_broker_id(session, broker_id)
    appointments = appointment_service.retry_read(
        lambda: appointment_service.list_in_range(gateway, start, end, broker_id=scoped),
        settings.READ_RETRY_ATTEMPTS,
    )
    return _list_response(appointments, now)


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    appointment = appointment_service.get_appointment(gateway, appointment_id, session)
    return appointment_service.to_read(appointment, now)


@router.post(
    "",
    response_model=AppointmentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_appointment(
    data: AppointmentCreate,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Schedule a visit; the client's scheduling status becomes awaiting."""
    appointment = scheduling_service.create_appointment(gateway, data, session)
    return appointment_service.to_read(appointment, now)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_status(
    appointment_id: UUID,
    data: AppointmentStatusChange,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Record a visit outcome (completed / not_completed)."""
    appointment = scheduling_service.update_status(gateway, appointment_id, data.status, session)
    return appointment_service.to_read(appointment, now)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def reschedule(
    appointment_id: UUID,
    data: AppointmentReschedule,
    session: ActorSession = Depends(get_current_session),
    gateway: DataGateway = Depends(get_gateway),
    now: datetime = Depends(get_now),
):
    """Move an appointment; it goes back to scheduled."""
    appointment = scheduling_service.reschedule(gateway, appointment_id, data.scheduled_at, session)
    return appointment_service.to_read(appointment, now)
