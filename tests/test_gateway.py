"""Tests for the data access gateway and change feed."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from brokerdesk.core.errors import NotFoundError, TransientError, ValidationError
from brokerdesk.db.enums import ChangeEventType
from brokerdesk.db.gateway import ChangeFeed, DataGateway, EventFilter, Filter, eq, is_in


def _appointment(broker_id, scheduled_at, **extra):
    return {"broker_id": broker_id, "title": "Visit", "scheduled_at": scheduled_at, **extra}


def test_insert_assigns_id_and_defaults(gateway):
    row = gateway.insert("clients", {"name": "Ana"})

    assert isinstance(row.id, uuid.UUID)
    assert row.status == "pending"
    assert row.created_at.tzinfo is not None


def test_query_filters_order_and_limit(gateway):
    broker_id = uuid.uuid4()
    base = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
    for hours in (5, 1, 3):
        gateway.insert("appointments", _appointment(broker_id, base + timedelta(hours=hours)))
    gateway.insert("appointments", _appointment(uuid.uuid4(), base))

    rows = gateway.query("appointments", [eq("broker_id", broker_id)], order=["scheduled_at"])
    assert [r.scheduled_at for r in rows] == [base + timedelta(hours=h) for h in (1, 3, 5)]

    newest = gateway.query("appointments", [eq("broker_id", broker_id)], order=["-scheduled_at"], limit=1)
    assert newest[0].scheduled_at == base + timedelta(hours=5)

    after = gateway.query(
        "appointments",
        [eq("broker_id", broker_id), Filter("scheduled_at", "gt", base + timedelta(hours=2))],
    )
    assert len(after) == 2


def test_in_and_is_null_operators(gateway):
    gateway.insert("clients", {"name": "A", "origin": "site"})
    gateway.insert("clients", {"name": "B", "origin": "referral"})
    gateway.insert("clients", {"name": "C"})

    assert len(gateway.query("clients", [is_in("origin", ["site", "referral"])])) == 2
    assert [c.name for c in gateway.query("clients", [Filter("origin", "is_null", True)])] == ["C"]
    assert gateway.count("clients", [Filter("origin", "is_null", False)]) == 2
    assert gateway.count("clients", [Filter("origin", "neq", "site")]) == 1


def test_datetimes_compare_across_timezones(gateway):
    broker_id = uuid.uuid4()
    sao_paulo = timezone(timedelta(hours=-3))
    gateway.insert(
        "appointments",
        _appointment(broker_id, datetime(2025, 3, 10, 14, 0, tzinfo=sao_paulo)),
    )

    # 17:00 UTC is the same instant
    rows = gateway.query(
        "appointments", [eq("scheduled_at", datetime(2025, 3, 10, 17, 0, tzinfo=timezone.utc))]
    )
    assert len(rows) == 1
    assert rows[0].scheduled_at.utcoffset() == timedelta(0)


def test_update_and_delete(gateway):
    row = gateway.insert("clients", {"name": "Ana"})

    updated = gateway.update("clients", row.id, {"origin": "site"})
    assert updated.origin == "site"

    gateway.delete("clients", row.id)
    assert gateway.get("clients", row.id) is None


def test_missing_rows_raise_not_found(gateway):
    with pytest.raises(NotFoundError):
        gateway.update("clients", uuid.uuid4(), {"origin": "site"})
    with pytest.raises(NotFoundError):
        gateway.delete("clients", uuid.uuid4())


def test_unknown_table_column_and_operator(gateway):
    with pytest.raises(ValidationError):
        gateway.query("properties")
    with pytest.raises(ValidationError) as exc:
        gateway.insert("clients", {"name": "Ana", "nickname": "A"})
    assert exc.value.field == "nickname"
    with pytest.raises(ValidationError):
        gateway.query("clients", [Filter("name", "like", "A%")])
    with pytest.raises(ValidationError):
        gateway.update("clients", uuid.uuid4(), {"id": uuid.uuid4()})


def test_integrity_error_maps_to_validation(gateway):
    # name is NOT NULL
    with pytest.raises(ValidationError):
        gateway.insert("clients", {"name": None})

    # Session is usable again after the rollback
    assert gateway.insert("clients", {"name": "Ana"}).name == "Ana"


def test_operational_error_maps_to_transient(gateway, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(gateway.db, "commit", broken_commit)

    with pytest.raises(TransientError):
        gateway.insert("clients", {"name": "Ana"})


# =============================================================================
# Change feed
# =============================================================================


def test_events_published_after_write(gateway):
    events = []
    gateway.subscribe("clients", EventFilter(), events.append)

    row = gateway.insert("clients", {"name": "Ana"})
    gateway.update("clients", row.id, {"status": "new", "broker_id": uuid.uuid4()})
    gateway.delete("clients", row.id)

    assert [e.type for e in events] == [
        ChangeEventType.INSERT,
        ChangeEventType.UPDATE,
        ChangeEventType.DELETE,
    ]
    assert events[1].old_record["status"] == "pending"
    assert events[1].record["status"] == "new"
    assert events[2].old_record["id"] == row.id


def test_event_filter_matches_type_and_values(gateway):
    pending_inserts = []
    gateway.subscribe(
        "clients",
        EventFilter(event=ChangeEventType.INSERT, match={"status": "pending"}),
        pending_inserts.append,
    )

    gateway.insert("clients", {"name": "Ana"})
    gateway.insert("clients", {"name": "Bia", "status": "new", "broker_id": uuid.uuid4()})

    assert len(pending_inserts) == 1
    assert pending_inserts[0].record["name"] == "Ana"


def test_failed_write_publishes_nothing(gateway):
    events = []
    gateway.subscribe("clients", EventFilter(), events.append)

    with pytest.raises(ValidationError):
        gateway.insert("clients", {"name": None})

    assert events == []


def test_failing_subscriber_does_not_break_write(gateway):
    seen = []

    def explode(event):
        raise RuntimeError("subscriber bug")

    gateway.subscribe("clients", EventFilter(), explode)
    gateway.subscribe("clients", EventFilter(), seen.append)

    row = gateway.insert("clients", {"name": "Ana"})

    assert gateway.get("clients", row.id) is not None
    assert len(seen) == 1


def test_unsubscribe_stops_delivery(gateway, feed):
    events = []
    sub = gateway.subscribe("clients", EventFilter(), events.append)
    assert feed.subscriber_count("clients") == 1

    sub.unsubscribe()
    sub.unsubscribe()
    gateway.insert("clients", {"name": "Ana"})

    assert events == []
    assert feed.subscriber_count("clients") == 0


def test_gateways_on_separate_feeds_are_isolated(db, feed):
    other = DataGateway(db, ChangeFeed())
    events = []
    feed.subscribe("clients", EventFilter(), events.append)

    other.insert("clients", {"name": "Ana"})

    assert events == []
