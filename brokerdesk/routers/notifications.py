"""Notifications router - pending intake badge count."""

from fastapi import APIRouter, Depends

from brokerdesk.core.deps import get_current_session, get_pending_monitor
from brokerdesk.schemas.auth import ActorSession
from brokerdesk.schemas.notification import PendingCountResponse
from brokerdesk.services.notification_service import PendingClientMonitor

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/pending-count", response_model=PendingCountResponse)
def get_pending_count(
    session: ActorSession = Depends(get_current_session),
    monitor: PendingClientMonitor = Depends(get_pending_monitor),
):
    """Clients waiting for a broker. Always 0 for brokers."""
    return PendingCountResponse(count=monitor.pending_count(session.role))
