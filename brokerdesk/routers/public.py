"""Public router - unauthenticated client intake (website contact form)."""

from fastapi import APIRouter, Depends

from brokerdesk.core.deps import get_gateway
from brokerdesk.db.gateway import DataGateway
from brokerdesk.schemas.client import ClientIntake, ClientRead
from brokerdesk.services import client_service

router = APIRouter(prefix="/public", tags=["public"])


@router.post("/clients", response_model=ClientRead, status_code=201)
def submit_intake(
    data: ClientIntake,
    gateway: DataGateway = Depends(get_gateway),
):
    """
    Submit the public contact form.

    The client lands in the pending queue with no broker; back office
    assigns it later.
    """
    return client_service.create_pending_client(gateway, data)
