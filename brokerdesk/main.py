"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

import anyio
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from brokerdesk.core.async_utils import run_on_loop
from brokerdesk.core.config import settings
from brokerdesk.core.deps import get_db
from brokerdesk.core.errors import EngineError
from brokerdesk.core.structured_logging import build_log_context, configure_logging
from brokerdesk.db.gateway import change_feed
from brokerdesk.db.session import SessionLocal
from brokerdesk.routers import (
    appointments_router,
    clients_router,
    notifications_router,
    public_router,
    websocket_router,
)
from brokerdesk.routers.websocket import (
    push_appointment_changed,
    push_pending_client,
    push_pending_count,
)
from brokerdesk.services.notification_service import AppointmentChangeRelay, PendingClientMonitor

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# ============================================================================
# Lifespan: pending intake monitor and appointment relay
# ============================================================================

async def _periodic_recount(monitor: PendingClientMonitor) -> None:
    """Reconcile the cached count; the change feed may miss events."""
    while True:
        await anyio.sleep(settings.PENDING_RECOUNT_INTERVAL_SECONDS)
        try:
            await anyio.to_thread.run_sync(monitor.recount)
        except Exception:
            logger.exception("Periodic pending recount failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    monitor = PendingClientMonitor(SessionLocal, change_feed)
    handles = [
        monitor.on_new_pending(
            lambda alert: run_on_loop(push_pending_client, alert.client_id, alert.count)
        ),
        monitor.on_count_changed(lambda count: run_on_loop(push_pending_count, count)),
    ]
    try:
        await anyio.to_thread.run_sync(monitor.start)
    except EngineError as e:
        # Subscriptions are in place; the periodic recount fills the count in
        logger.warning("Pending monitor started without an initial count: %s", e)
    app.state.pending_monitor = monitor

    relay = AppointmentChangeRelay(change_feed)
    handles.append(relay.on_change(lambda change: run_on_loop(push_appointment_changed, change)))
    relay.start()

    async with anyio.create_task_group() as tg:
        tg.start_soon(_periodic_recount, monitor)
        try:
            yield
        finally:
            tg.cancel_scope.cancel()

    for handle in handles:
        handle.remove()
    relay.stop()
    monitor.stop()
    app.state.pending_monitor = None


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Brokerdesk API",
    description="Brokerage back office: client pipeline and appointment scheduling",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


# ============================================================================
# Error handling
# ============================================================================

async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Translate engine errors into their HTTP status and tagged payload."""
    log_context = build_log_context(route=request.url.path, method=request.method)
    if exc.status_code >= 500:
        logger.warning("%s: %s", exc.kind, exc.message, extra=log_context)
    else:
        logger.info("%s: %s", exc.kind, exc.message, extra=log_context)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_exception_handler(EngineError, engine_error_handler)


# ============================================================================
# Routers
# ============================================================================

app.include_router(public_router)
app.include_router(clients_router)
app.include_router(appointments_router)
app.include_router(notifications_router)
app.include_router(websocket_router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health(db: Session = Depends(get_db)):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    db.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
