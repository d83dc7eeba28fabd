"""
Role-based access policy for clients and appointments.

Pure predicates over (role, entity state); no I/O. Services call these and
turn a False into an AuthorizationError via require(), so a denial is never
silent.
"""

from uuid import UUID

from brokerdesk.core.errors import AuthorizationError
from brokerdesk.db.enums import LOCKED_STAGES, ROLES_BACK_OFFICE, ClientStatus, Role


def _role(role: Role | str) -> Role:
    return role if isinstance(role, Role) else Role(role)


def _status(status: ClientStatus | str) -> ClientStatus:
    return status if isinstance(status, ClientStatus) else ClientStatus(status)


def is_back_office(role: Role | str) -> bool:
    return _role(role) in ROLES_BACK_OFFICE


def is_locked_stage(status: ClientStatus | str) -> bool:
    """Stages owned by back-office review (bank review and its outcomes)."""
    return _status(status) in LOCKED_STAGES


def can_mutate_pipeline_status(role: Role | str, client_status: ClientStatus | str) -> bool:
    """Brokers may move clients freely except out of a locked stage."""
    if is_back_office(role):
        return True
    return not is_locked_stage(client_status)


def can_assign_broker(role: Role | str) -> bool:
    return is_back_office(role)


def can_delete_client(role: Role | str) -> bool:
    return is_back_office(role)


def can_update_appointment_status(role: Role | str) -> bool:
    # Every known role; brokers are further limited to their own appointments
    return _role(role) in (Role.ADMINISTRATOR, Role.DEVELOPER, Role.BROKER)


def can_access_broker_scope(role: Role | str, actor_id: UUID, broker_id: UUID | None) -> bool:
    """
    Row-level visibility.

    Back office sees every row. A broker only sees rows assigned to it, so
    unassigned (pending) clients are invisible to brokers.
    """
    if is_back_office(role):
        return True
    return broker_id is not None and broker_id == actor_id


def require(allowed: bool, message: str) -> None:
    """Raise AuthorizationError unless allowed."""
    if not allowed:
        raise AuthorizationError(message)
