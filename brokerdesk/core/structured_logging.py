"""Structured logging helpers (PII-safe)."""

import logging
from typing import Any
from uuid import UUID

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def build_log_context(
    *,
    actor_id: UUID | str | None = None,
    role: str | None = None,
    client_id: UUID | str | None = None,
    appointment_id: UUID | str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (ids only, never names or contacts)."""
    context: dict[str, Any] = {}
    if actor_id:
        context["actor_id"] = str(actor_id)
    if role:
        context["role"] = str(getattr(role, "value", role))
    if client_id:
        context["client_id"] = str(client_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def configure_logging(level: str = "INFO") -> None:
    """Root logger setup for the API process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # Engine SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
