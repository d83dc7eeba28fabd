"""
Data access gateway.

Table-level insert/update/delete/query over a SQLAlchemy session, plus an
in-process change feed for row events. Each write is its own committed unit:
the engine never assumes more than single-row atomicity from the store, so
multi-row consistency is handled by the services on top of this module.

Database failures are translated into the engine taxonomy here and nowhere
else:
- IntegrityError -> ValidationError
- OperationalError / InterfaceError / pool TimeoutError -> TransientError
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator
from uuid import UUID

from sqlalchemy import func, inspect as sa_inspect, select
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from brokerdesk.core.errors import NotFoundError, TransientError, ValidationError
from brokerdesk.db.base import Base
from brokerdesk.db.enums import ChangeEventType
from brokerdesk.db.models import Appointment, Client, ClientDocument

logger = logging.getLogger(__name__)


TABLES: dict[str, type[Base]] = {
    "clients": Client,
    "appointments": Appointment,
    "client_documents": ClientDocument,
}

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


# =============================================================================
# Query filters
# =============================================================================


@dataclass(frozen=True)
class Filter:
    """A single column predicate: ``Filter("status", "eq", "pending")``."""

    column: str
    op: str
    value: Any = None


_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "eq": lambda col, v: col == v,
    "neq": lambda col, v: col != v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "in": lambda col, v: col.in_(list(v)),
    "is_null": lambda col, v: col.is_(None) if v else col.is_not(None),
}


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def lt(column: str, value: Any) -> Filter:
    return Filter(column, "lt", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def is_in(column: str, values: Any) -> Filter:
    return Filter(column, "in", values)


# =============================================================================
# Change feed
# =============================================================================


@dataclass(frozen=True)
class ChangeEvent:
    """A committed row change. ``old_record`` is set for UPDATE and DELETE."""

    table: str
    type: ChangeEventType
    record: dict[str, Any]
    old_record: dict[str, Any] | None = None


@dataclass(frozen=True)
class EventFilter:
    """
    Which events a subscriber wants.

    ``event=None`` matches every event type. ``match`` is an equality filter
    applied to the new record (or the old one for DELETE).
    """

    event: ChangeEventType | None = None
    match: dict[str, Any] = field(default_factory=dict)

    def matches(self, event: ChangeEvent) -> bool:
        if self.event is not None and event.type != self.event:
            return False
        row = event.old_record if event.type == ChangeEventType.DELETE else event.record
        row = row or {}
        return all(row.get(k) == v for k, v in self.match.items())


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by subscribe(); call unsubscribe() to stop delivery."""

    def __init__(self, feed: "ChangeFeed", table: str, event_filter: EventFilter, callback: ChangeCallback):
        self._feed = feed
        self.table = table
        self.event_filter = event_filter
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """
    In-process publish/subscribe for committed row changes.

    Delivery is best effort: callbacks run synchronously on the writer's
    thread after commit. A failing callback is logged and does not affect
    the write or other subscribers. Subscribers must not assume the stream
    is gap-free.
    """

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, table: str, event_filter: EventFilter, callback: ChangeCallback) -> Subscription:
        if table not in TABLES:
            raise ValidationError(f"Unknown table '{table}'", field="table")
        sub = Subscription(self, table, event_filter, callback)
        with self._lock:
            self._subscriptions.setdefault(table, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.table, [])
            if sub in subs:
                subs.remove(sub)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            subs = list(self._subscriptions.get(event.table, []))

        for sub in subs:
            if not sub.event_filter.matches(event):
                continue
            try:
                sub.callback(event)
            except Exception:
                logger.exception(
                    "Change feed subscriber failed table=%s event=%s", event.table, event.type.value
                )

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))


# Process-wide feed; requests get their own gateway but share the feed
change_feed = ChangeFeed()


# =============================================================================
# Gateway
# =============================================================================


def snapshot(row: Base) -> dict[str, Any]:
    """Plain dict of a row's column values."""
    mapper = sa_inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}


class DataGateway:
    """Synchronous request/response access to the authoritative store."""

    def __init__(self, db: Session, feed: ChangeFeed | None = None):
        self.db = db
        self.feed = feed if feed is not None else change_feed

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _model(table: str) -> type[Base]:
        try:
            return TABLES[table]
        except KeyError:
            raise ValidationError(f"Unknown table '{table}'", field="table") from None

    @staticmethod
    def _column(model: type[Base], name: str):
        if name not in model.__table__.columns:
            raise ValidationError(f"Unknown column '{name}' on {model.__tablename__}", field=name)
        return getattr(model, name)

    @contextmanager
    def _write(self, table: str, action: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Gateway %s on %s rejected: %s", action, table, e.orig)
            raise ValidationError(f"{action} on {table} violates a constraint") from e
        except _TRANSIENT_ERRORS as e:
            self.db.rollback()
            logger.warning("Gateway %s on %s failed: %s", action, table, e)
            raise TransientError(f"Data store unavailable during {action} on {table}") from e

    @contextmanager
    def _read(self, table: str) -> Iterator[None]:
        try:
            yield
        except _TRANSIENT_ERRORS as e:
            self.db.rollback()
            logger.warning("Gateway read on %s failed: %s", table, e)
            raise TransientError(f"Data store unavailable while reading {table}") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, table: str, record: dict[str, Any]) -> Base:
        model = self._model(table)
        for key in record:
            self._column(model, key)

        row = model(**record)
        with self._write(table, "insert"):
            self.db.add(row)
        self.db.refresh(row)

        self.feed.publish(ChangeEvent(table, ChangeEventType.INSERT, snapshot(row)))
        return row

    def update(self, table: str, id: UUID, patch: dict[str, Any]) -> Base:
        model = self._model(table)
        for key in patch:
            if key == "id":
                raise ValidationError("Primary key cannot be updated", field="id")
            self._column(model, key)

        with self._read(table):
            row = self.db.get(model, id)
        if row is None:
            raise NotFoundError(f"{table} row {id} not found")

        old = snapshot(row)
        with self._write(table, "update"):
            for key, value in patch.items():
                setattr(row, key, value)
        self.db.refresh(row)

        self.feed.publish(ChangeEvent(table, ChangeEventType.UPDATE, snapshot(row), old))
        return row

    def delete(self, table: str, id: UUID) -> None:
        model = self._model(table)
        with self._read(table):
            row = self.db.get(model, id)
        if row is None:
            raise NotFoundError(f"{table} row {id} not found")

        old = snapshot(row)
        with self._write(table, "delete"):
            self.db.delete(row)

        self.feed.publish(ChangeEvent(table, ChangeEventType.DELETE, old, old))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _conditions(self, model: type[Base], filters: list[Filter] | None) -> list:
        conditions = []
        for f in filters or []:
            op = _OPERATORS.get(f.op)
            if op is None:
                raise ValidationError(f"Unknown filter operator '{f.op}'", field=f.column)
            conditions.append(op(self._column(model, f.column), f.value))
        return conditions

    def query(
        self,
        table: str,
        filters: list[Filter] | None = None,
        order: list[str] | None = None,
        limit: int | None = None,
    ) -> list[Base]:
        """
        Select rows.

        ``order`` takes column names, prefixed with ``-`` for descending.
        """
        model = self._model(table)
        stmt = select(model).where(*self._conditions(model, filters))

        for key in order or []:
            descending = key.startswith("-")
            col = self._column(model, key.lstrip("-"))
            stmt = stmt.order_by(col.desc() if descending else col.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        with self._read(table):
            return list(self.db.scalars(stmt).all())

    def get(self, table: str, id: UUID) -> Base | None:
        rows = self.query(table, [eq("id", id)], limit=1)
        return rows[0] if rows else None

    def count(self, table: str, filters: list[Filter] | None = None) -> int:
        model = self._model(table)
        stmt = select(func.count()).select_from(model).where(*self._conditions(model, filters))
        with self._read(table):
            return int(self.db.scalar(stmt) or 0)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, table: str, event_filter: EventFilter, callback: ChangeCallback) -> Subscription:
        self._model(table)
        return self.feed.subscribe(table, event_filter, callback)
