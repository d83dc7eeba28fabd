"""Engine error taxonomy.

Every error raised by the engine carries a stable ``kind`` tag so the
outermost layer (HTTP handler, CLI, UI shell) can discriminate on it without
importing the concrete classes. Only that outer layer turns errors into
user-facing text or offers a retry.

- ValidationError: malformed or missing input. Never retried.
- AuthorizationError: role not permitted. Never retried.
- InvalidTransitionError: pipeline rule violated. Never retried.
- PartialSyncError: one of two mirrored writes committed, the other failed.
  Retry the sync step only.
- TransientError: gateway timeout/connectivity. Retry pure reads only.
- NotFoundError: referenced row does not exist.
"""

from typing import Any


class EngineError(Exception):
    """Base exception for engine errors."""

    kind = "engine"
    status_code = 500

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "detail": self.message}
        payload.update({k: v for k, v in self.extra.items() if v is not None})
        return payload


class ValidationError(EngineError):
    """Malformed or missing required input."""

    kind = "validation"
    status_code = 422

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, field=field)
        self.field = field


class AuthorizationError(EngineError):
    """Actor role lacks permission for the requested operation."""

    kind = "authorization"
    status_code = 403


class InvalidTransitionError(EngineError):
    """Pipeline state machine rule violated."""

    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, attempted: str, message: str | None = None):
        super().__init__(
            message or f"Cannot move client from '{current}' to '{attempted}'",
            current=current,
            attempted=attempted,
        )
        self.current = current
        self.attempted = attempted


class PartialSyncError(EngineError):
    """
    The first of two mirrored writes committed and the second failed.

    ``committed`` names the side that is now the source of truth, ``failed``
    the side that needs the sync step re-issued.
    """

    kind = "partial_sync"
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        committed: str,
        failed: str,
        appointment_id: Any = None,
        client_id: Any = None,
        expected_status: str | None = None,
    ):
        super().__init__(
            message,
            committed=committed,
            failed=failed,
            appointment_id=str(appointment_id) if appointment_id else None,
            client_id=str(client_id) if client_id else None,
            expected_status=expected_status,
        )
        self.committed = committed
        self.failed = failed
        self.appointment_id = appointment_id
        self.client_id = client_id
        self.expected_status = expected_status


class TransientError(EngineError):
    """Gateway-level timeout or connectivity failure."""

    kind = "transient"
    status_code = 503


class NotFoundError(EngineError):
    """Referenced row does not exist."""

    kind = "not_found"
    status_code = 404
