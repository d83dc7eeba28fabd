"""Tests for read-time appointment classification and urgency lists."""

import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from brokerdesk.core.errors import TransientError
from brokerdesk.db.enums import AppointmentStatus, TemporalClass
from brokerdesk.db.models import Appointment
from brokerdesk.services import appointment_service

SAO_PAULO = ZoneInfo("America/Sao_Paulo")


def _appt(scheduled_at: datetime, status: AppointmentStatus = AppointmentStatus.SCHEDULED) -> Appointment:
    return Appointment(
        id=uuid.uuid4(),
        broker_id=uuid.uuid4(),
        title="Visit",
        scheduled_at=scheduled_at,
        status=status.value,
    )


# =============================================================================
# classify
# =============================================================================


def test_past_scheduled_is_overdue():
    now = datetime(2025, 3, 11, 9, 0, tzinfo=SAO_PAULO)
    appt = _appt(datetime(2025, 3, 10, 14, 0, tzinfo=SAO_PAULO))

    assert appointment_service.classify(appt, now) == TemporalClass.OVERDUE


def test_later_today_is_due_today():
    now = datetime(2025, 3, 11, 9, 0, tzinfo=SAO_PAULO)
    appt = _appt(datetime(2025, 3, 11, 18, 30, tzinfo=SAO_PAULO))

    assert appointment_service.classify(appt, now) == TemporalClass.DUE_TODAY


def test_exact_tie_is_due_today_not_overdue():
    now = datetime(2025, 3, 11, 9, 0, 0, tzinfo=SAO_PAULO)
    appt = _appt(now)

    assert appointment_service.classify(appt, now) == TemporalClass.DUE_TODAY
    assert appointment_service.classify(appt, now + timedelta(microseconds=1)) == TemporalClass.OVERDUE


def test_future_day_is_upcoming():
    now = datetime(2025, 3, 11, 9, 0, tzinfo=SAO_PAULO)
    appt = _appt(datetime(2025, 3, 12, 8, 0, tzinfo=SAO_PAULO))

    assert appointment_service.classify(appt, now) == TemporalClass.UPCOMING


@pytest.mark.parametrize("status", [AppointmentStatus.COMPLETED, AppointmentStatus.NOT_COMPLETED])
def test_finished_appointments_never_overdue(status):
    now = datetime(2025, 3, 11, 9, 0, tzinfo=SAO_PAULO)
    appt = _appt(datetime(2024, 1, 1, 9, 0, tzinfo=SAO_PAULO), status)

    assert appointment_service.classify(appt, now) == TemporalClass.UPCOMING


def test_calendar_day_follows_now_timezone():
    # 23:30 in Sao Paulo is 02:30 UTC the next day
    appt = _appt(datetime(2025, 3, 11, 2, 30, tzinfo=timezone.utc))
    now_local = datetime(2025, 3, 10, 20, 0, tzinfo=SAO_PAULO)

    assert appointment_service.classify(appt, now_local) == TemporalClass.DUE_TODAY
    assert appointment_service.classify(appt, now_local.astimezone(timezone.utc)) == TemporalClass.UPCOMING


def test_naive_values_are_utc():
    appt = _appt(datetime(2025, 3, 10, 14, 0))
    now = datetime(2025, 3, 10, 15, 0)

    assert appointment_service.classify(appt, now) == TemporalClass.OVERDUE


def test_crossing_midnight_never_returns_to_upcoming():
    appt = _appt(datetime(2025, 3, 10, 23, 0, tzinfo=SAO_PAULO))
    start = datetime(2025, 3, 10, 20, 0, tzinfo=SAO_PAULO)

    seen = []
    for minutes in range(0, 8 * 60, 15):
        seen.append(appointment_service.classify(appt, start + timedelta(minutes=minutes)))

    first_overdue = seen.index(TemporalClass.OVERDUE)
    assert set(seen[:first_overdue]) == {TemporalClass.DUE_TODAY}
    assert set(seen[first_overdue:]) == {TemporalClass.OVERDUE}


def test_classify_is_pure_and_not_persisted(gateway):
    row = gateway.insert(
        "appointments",
        {
            "broker_id": uuid.uuid4(),
            "title": "Visit",
            "scheduled_at": datetime(2025, 3, 10, 14, 0, tzinfo=timezone.utc),
        },
    )
    now = datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc)

    read = appointment_service.to_read(row, now)

    assert read.temporal_class == TemporalClass.OVERDUE
    assert "temporal_class" not in Appointment.__table__.columns


# =============================================================================
# Lists
# =============================================================================


def _insert(gateway, broker_id, scheduled_at, status=AppointmentStatus.SCHEDULED):
    return gateway.insert(
        "appointments",
        {
            "broker_id": broker_id,
            "title": "Visit",
            "scheduled_at": scheduled_at,
            "status": status.value,
        },
    )


def test_list_overdue_and_upcoming(gateway):
    b7 = uuid.uuid4()
    now = datetime(2025, 3, 11, 9, 0, tzinfo=SAO_PAULO)
    late_2 = _insert(gateway, b7, now - timedelta(days=2))
    late_1 = _insert(gateway, b7, now - timedelta(hours=1))
    _insert(gateway, b7, now - timedelta(days=3), AppointmentStatus.COMPLETED)
    at_now = _insert(gateway, b7, now)
    soon = _insert(gateway, b7, now + timedelta(days=2))
    _insert(gateway, b7, now + timedelta(days=8))
    _insert(gateway, uuid.uuid4(), now - timedelta(days=1))

    overdue = appointment_service.list_overdue(gateway, now, broker_id=b7)
    assert [a.id for a in overdue] == [late_2.id, late_1.id]
    assert len(appointment_service.list_overdue(gateway, now)) == 3

    upcoming = appointment_service.list_upcoming(gateway, now, 7, broker_id=b7)
    assert [a.id for a in upcoming] == [at_now.id, soon.id]


def test_upcoming_horizon_is_inclusive(gateway):
    b7 = uuid.uuid4()
    now = datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc)
    edge = _insert(gateway, b7, now + timedelta(days=7))

    assert [a.id for a in appointment_service.list_upcoming(gateway, now, 7)] == [edge.id]
    assert appointment_service.list_upcoming(gateway, now, 6) == []


def test_list_in_range_includes_every_status(gateway):
    b7 = uuid.uuid4()
    start = datetime(2025, 3, 10, 0, 0, tzinfo=SAO_PAULO)
    done = _insert(gateway, b7, start + timedelta(hours=10), AppointmentStatus.COMPLETED)
    open_ = _insert(gateway, b7, start + timedelta(days=1))
    _insert(gateway, b7, start + timedelta(days=7))

    rows = appointment_service.list_in_range(gateway, start, start + timedelta(days=7))

    assert [a.id for a in rows] == [done.id, open_.id]


def test_retry_read_retries_transient_errors():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise TransientError("timeout")
        return "ok"

    assert appointment_service.retry_read(flaky, 2) == "ok"
    assert len(calls) == 2


def test_retry_read_gives_up():
    def always_down():
        raise TransientError("timeout")

    with pytest.raises(TransientError):
        appointment_service.retry_read(always_down, 3)


def test_retry_read_single_attempt_does_not_retry():
    calls = []

    def down():
        calls.append(1)
        raise TransientError("timeout")

    with pytest.raises(TransientError):
        appointment_service.retry_read(down, 1)
    assert len(calls) == 1


def test_retry_read_other_errors_propagate_immediately():
    calls = []

    def broken():
        calls.append(1)
        raise ValueError("bad row")

    with pytest.raises(ValueError):
        appointment_service.retry_read(broken, 3)
    assert len(calls) == 1
