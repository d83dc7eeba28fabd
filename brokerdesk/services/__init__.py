"""Engine services: client pipeline, appointments, scheduling coordinator, notifications."""

from brokerdesk.services import (
    appointment_service,
    client_service,
    notification_service,
    scheduling_service,
)

__all__ = [
    "appointment_service",
    "client_service",
    "notification_service",
    "scheduling_service",
]
