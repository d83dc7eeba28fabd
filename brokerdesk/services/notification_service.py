"""
Live notifications fed by the gateway change feed.

PendingClientMonitor keeps a cached count of clients waiting for a broker
and alerts listeners when a new one arrives. It listens to the gateway's
change feed:

- INSERT on clients with status=pending: add the id, then alert
- UPDATE/DELETE touching a pending row: full recount

The feed is best effort, so the cached count is reconciled with a full
recount on start, on resubscribe and periodically (see main.lifespan).

The cache is the set of pending client ids, so an INSERT that a concurrent
recount already picked up is not counted twice. Mutations happen under one
lock; readers take a lock-free snapshot.

AppointmentChangeRelay forwards every appointment INSERT/UPDATE/DELETE so
open client profiles can refresh their appointment history.
"""

import logging
import threading
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from brokerdesk.core.structured_logging import build_log_context
from brokerdesk.db.enums import ChangeEventType, ClientStatus, Role
from brokerdesk.db.gateway import (
    ChangeEvent,
    ChangeFeed,
    DataGateway,
    EventFilter,
    Subscription,
    change_feed,
    eq,
)
from brokerdesk.schemas.notification import AppointmentChange, PendingClientAlert

logger = logging.getLogger(__name__)

CLIENTS = "clients"
APPOINTMENTS = "appointments"
PENDING = ClientStatus.PENDING.value

AlertCallback = Callable[[PendingClientAlert], None]
CountCallback = Callable[[int], None]
AppointmentCallback = Callable[[AppointmentChange], None]


class ListenerHandle:
    """Returned by the on_* registration methods; call remove() to stop."""

    def __init__(self, listeners: list, callback: Callable, lock: threading.Lock):
        self._listeners = listeners
        self._callback = callback
        self._lock = lock

    def remove(self) -> None:
        with self._lock:
            if self._callback in self._listeners:
                self._listeners.remove(self._callback)


class PendingClientMonitor:
    """Cached pending-client count with new-arrival alerts."""

    def __init__(self, session_factory: Callable[[], Session], feed: ChangeFeed | None = None):
        self._session_factory = session_factory
        self._feed = feed if feed is not None else change_feed
        self._pending_ids: frozenset[UUID] = frozenset()
        self._write_lock = threading.Lock()
        self._listener_lock = threading.Lock()
        self._subscriptions: list[Subscription] = []
        self._alert_listeners: list[AlertCallback] = []
        self._count_listeners: list[CountCallback] = []

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def count(self) -> int:
        return len(self._pending_ids)

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    def pending_count(self, role: Role | str) -> int:
        """Brokers never see unassigned intake."""
        if Role(role) == Role.BROKER:
            return 0
        return self.count

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self._feed.subscribe(
                CLIENTS,
                EventFilter(event=ChangeEventType.INSERT, match={"status": PENDING}),
                self._handle_insert,
            ),
            self._feed.subscribe(
                CLIENTS,
                EventFilter(event=ChangeEventType.UPDATE),
                self._handle_change,
            ),
            self._feed.subscribe(
                CLIENTS,
                EventFilter(event=ChangeEventType.DELETE),
                self._handle_change,
            ),
        ]
        self.recount()
        logger.info("Pending client monitor started count=%d", self.count)

    def stop(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    def resubscribe(self) -> None:
        """Drop and re-create subscriptions, then reconcile with a recount."""
        self.stop()
        self.start()

    def recount(self) -> int:
        """Replace the cached pending ids with a full read from the store."""
        with self._write_lock:
            db = self._session_factory()
            try:
                rows = DataGateway(db, self._feed).query(CLIENTS, [eq("status", PENDING)])
                pending_ids = frozenset(row.id for row in rows)
            finally:
                db.close()
            previous = len(self._pending_ids)
            count = len(pending_ids)
            changed = count != previous
            if changed:
                logger.info("Pending count reconciled %d -> %d", previous, count)
            self._pending_ids = pending_ids

        if changed:
            self._emit_count(count)
        return count

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def on_new_pending(self, callback: AlertCallback) -> ListenerHandle:
        with self._listener_lock:
            self._alert_listeners.append(callback)
        return ListenerHandle(self._alert_listeners, callback, self._listener_lock)

    def on_count_changed(self, callback: CountCallback) -> ListenerHandle:
        with self._listener_lock:
            self._count_listeners.append(callback)
        return ListenerHandle(self._count_listeners, callback, self._listener_lock)

    def _emit_alert(self, alert: PendingClientAlert) -> None:
        with self._listener_lock:
            listeners = list(self._alert_listeners)
        for callback in listeners:
            try:
                callback(alert)
            except Exception:
                logger.exception("Pending client alert listener failed")

    def _emit_count(self, count: int) -> None:
        with self._listener_lock:
            listeners = list(self._count_listeners)
        for callback in listeners:
            try:
                callback(count)
            except Exception:
                logger.exception("Pending count listener failed")

    # -------------------------------------------------------------------------
    # Change feed handlers
    # -------------------------------------------------------------------------

    def _handle_insert(self, event: ChangeEvent) -> None:
        client_id: UUID = event.record["id"]
        with self._write_lock:
            # A recount between commit and publish may already hold this id
            added = client_id not in self._pending_ids
            if added:
                self._pending_ids = self._pending_ids | {client_id}
            count = len(self._pending_ids)

        logger.info("New pending client count=%d", count, extra=build_log_context(client_id=client_id))
        self._emit_alert(PendingClientAlert(client_id=client_id, count=count))
        if added:
            self._emit_count(count)

    def _handle_change(self, event: ChangeEvent) -> None:
        old_status = (event.old_record or {}).get("status")
        new_status = event.record.get("status") if event.type == ChangeEventType.UPDATE else None
        # Deletes have no new status, so a deleted pending row also counts here
        if PENDING in (old_status, new_status) and old_status != new_status:
            self.recount()


class AppointmentChangeRelay:
    """
    Forwards every committed appointment change to listeners.

    Listeners decide who may see the change (see routers.websocket); the
    relay itself holds no state beyond its subscription.
    """

    def __init__(self, feed: ChangeFeed | None = None):
        self._feed = feed if feed is not None else change_feed
        self._subscription: Subscription | None = None
        self._listener_lock = threading.Lock()
        self._listeners: list[AppointmentCallback] = []

    @property
    def running(self) -> bool:
        return self._subscription is not None

    def start(self) -> None:
        if self._subscription is None:
            self._subscription = self._feed.subscribe(APPOINTMENTS, EventFilter(), self._handle)

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def on_change(self, callback: AppointmentCallback) -> ListenerHandle:
        with self._listener_lock:
            self._listeners.append(callback)
        return ListenerHandle(self._listeners, callback, self._listener_lock)

    def _handle(self, event: ChangeEvent) -> None:
        row = event.old_record if event.type == ChangeEventType.DELETE else event.record
        change = AppointmentChange(
            event=event.type,
            appointment_id=row["id"],
            client_id=row["client_id"],
            broker_id=row["broker_id"],
            status=row["status"],
            scheduled_at=row["scheduled_at"],
        )
        with self._listener_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(change)
            except Exception:
                logger.exception(
                    "Appointment change listener failed",
                    extra=build_log_context(
                        client_id=change.client_id, appointment_id=change.appointment_id
                    ),
                )
