"""Enums for the brokerage back office.

String values are what gets stored in the database and returned by the API.
"""

from enum import Enum


# =============================================================================
# Roles
# =============================================================================


class Role(str, Enum):
    """
    Staff roles.

    - ADMINISTRATOR: Back-office manager (assignment, deletion, locked stages)
    - DEVELOPER: Platform admin, same engine rights as administrator
    - BROKER: Sees and manages only clients/appointments assigned to them
    """

    ADMINISTRATOR = "administrator"
    DEVELOPER = "developer"
    BROKER = "broker"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


# Roles with full back-office rights
ROLES_BACK_OFFICE = {Role.ADMINISTRATOR, Role.DEVELOPER}


# =============================================================================
# Client pipeline
# =============================================================================


class ClientStatus(str, Enum):
    """
    Sales pipeline status (Kanban columns, in board order).

    PENDING is the intake-only value a client has before a broker is
    assigned; it is not a board column and set_status cannot reach it.
    """

    NEW = "new"
    IN_SERVICE = "in_service"
    DOCUMENT_REVIEW = "document_review"
    BANK_REVIEW = "bank_review"
    APPROVED = "approved"
    CONDITIONED = "conditioned"
    REJECTED = "rejected"
    SALE_COMPLETED = "sale_completed"
    RESCINDED = "rescinded"

    PENDING = "pending"


WORKING_STATUSES: tuple[ClientStatus, ...] = tuple(
    s for s in ClientStatus if s is not ClientStatus.PENDING
)

# Stages reserved for back-office review; brokers cannot move clients out of them
LOCKED_STAGES = frozenset(
    {
        ClientStatus.BANK_REVIEW,
        ClientStatus.APPROVED,
        ClientStatus.CONDITIONED,
        ClientStatus.REJECTED,
    }
)


class SchedulingStatus(str, Enum):
    """Client-side mirror of the latest appointment status."""

    AWAITING = "awaiting"
    NOT_COMPLETED = "not_completed"
    COMPLETED = "completed"


# =============================================================================
# Appointments
# =============================================================================


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → completed
              ↘ not_completed
    Reschedule moves either terminal value back to scheduled.
    """

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    NOT_COMPLETED = "not_completed"


# Values update_status accepts; SCHEDULED is only reachable through reschedule
APPOINTMENT_OUTCOMES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.NOT_COMPLETED})

SCHEDULING_MIRROR: dict[AppointmentStatus, SchedulingStatus] = {
    AppointmentStatus.SCHEDULED: SchedulingStatus.AWAITING,
    AppointmentStatus.COMPLETED: SchedulingStatus.COMPLETED,
    AppointmentStatus.NOT_COMPLETED: SchedulingStatus.NOT_COMPLETED,
}


class TemporalClass(str, Enum):
    """Read-time urgency of an appointment. Never persisted."""

    UPCOMING = "upcoming"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


# =============================================================================
# Change feed
# =============================================================================


class ChangeEventType(str, Enum):
    """Row change events published by the data gateway."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
