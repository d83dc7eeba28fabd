"""FastAPI dependencies for authentication, database access and request context."""

from datetime import datetime
from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from brokerdesk.core.config import settings
from brokerdesk.core.security import decode_session_token
from brokerdesk.db.gateway import DataGateway, change_feed
from brokerdesk.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "brokerdesk_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_gateway(db: Session = Depends(get_db)) -> DataGateway:
    """Per-request gateway over the shared change feed."""
    return DataGateway(db, change_feed)


def get_now() -> datetime:
    """Current instant in the business timezone (decides what 'today' is)."""
    return datetime.now(settings.business_tz)


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_current_session(request: Request):
    """
    Get the acting identity from the session cookie or bearer token.

    This is the PRIMARY auth dependency; the returned ActorSession is passed
    explicitly to every service call.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    # Import here to avoid circular imports
    from brokerdesk.db.enums import Role
    from brokerdesk.schemas.auth import ActorSession, TokenPayload

    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = TokenPayload.model_validate(decode_session_token(token))
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(payload.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{payload.role}'. Contact administrator.",
        )

    return ActorSession(actor_id=payload.sub, role=Role(payload.role))


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )


def get_pending_monitor(request: Request):
    """The PendingClientMonitor started by the application lifespan."""
    monitor = getattr(request.app.state, "pending_monitor", None)
    if monitor is None:
        raise HTTPException(status_code=503, detail="Notifications not available")
    return monitor
