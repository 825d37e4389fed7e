# platelink/services/activity_aggregator.py
"""
Activity history, per-vehicle / per-user statistics, and owner notifications.

Every search and reveal lands here. Vehicle counters move only through the
registry's atomic increment; events and notifications are append-only history
that survives removal of the vehicle they mention. Notifications are stored
only, delivering them is someone else's job.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Optional

from sqlalchemy import func

from platelink.domain import (
    ActivityEvent, ActivityKind, Notification, NotificationKind, UserStats, Vehicle,
)
from platelink.errors import NotFoundError
from platelink.models.activity import ActivityEvent as EventRow, Notification as NotificationRow
from platelink.utils.ids import new_id, utcnow
from platelink.utils.retry import retry_transient
from platelink.utils.logger import get_logger

logger = get_logger(__name__)


class ActivityAggregator(ABC):
    def __init__(self, registry):
        self._registry = registry

    # ── Recording ─────────────────────────────────────────────────────────

    def record(self, kind: ActivityKind, user_id: str = None, plate: str = None,
               vehicle_id: str = None, found: bool = None) -> ActivityEvent:
        event = ActivityEvent(
            event_id=new_id(), kind=ActivityKind(kind), created_at=utcnow(),
            user_id=user_id, plate=plate, vehicle_id=vehicle_id, found=found,
        )
        self._append_event(event)
        logger.debug(f"[ACTIVITY] {event.kind.value} user={user_id} plate={plate} found={found}")
        return event

    def record_search(self, searcher_id: Optional[str], plate: str, vehicle: Optional[Vehicle]):
        """Count a search. Returns the vehicle's new stats, or None when nothing was found."""
        stats = None
        if vehicle is not None:
            stats = self._registry.increment_stats(vehicle.vehicle_id, searches=1, searched_at=utcnow())
        self.record(ActivityKind.VEHICLE_SEARCHED, user_id=searcher_id, plate=plate,
                    vehicle_id=vehicle.vehicle_id if stats else None, found=stats is not None)
        return stats

    def record_contact(self, searcher_id: str, vehicle: Vehicle):
        stats = self._registry.increment_stats(vehicle.vehicle_id, contacts=1)
        self.record(ActivityKind.CONTACT_REVEALED, user_id=searcher_id,
                    plate=vehicle.plate, vehicle_id=vehicle.vehicle_id, found=True)
        self.notify(vehicle.owner_id, NotificationKind.CONTACT_REQUEST,
                    f"Someone looked up your vehicle {vehicle.plate} and requested your contact details")
        return stats

    def notify(self, user_id: str, kind: NotificationKind, message: str) -> Notification:
        notification = Notification(
            notification_id=new_id(), user_id=user_id, kind=NotificationKind(kind),
            message=message, created_at=utcnow(),
        )
        self._add_notification(notification)
        logger.info(f"[NOTIFY][{notification.kind.value.upper()}] {user_id}: {message}")
        return notification

    # ── Reading ───────────────────────────────────────────────────────────

    def vehicle_stats(self, vehicle_id: str):
        stats = self._registry.get_stats(vehicle_id)
        if stats is None:
            raise NotFoundError("VehicleNotFound", f"Vehicle {vehicle_id} not found")
        return stats

    def search_history(self, user_id: str, limit: int = 20) -> list:
        return self._query_events(user_id, ActivityKind.VEHICLE_SEARCHED, limit)

    def activity(self, user_id: str, limit: int = 20) -> list:
        return self._query_events(user_id, None, limit)

    def notifications(self, user_id: str, unread_only: bool = False, limit: int = 20) -> list:
        return self._query_notifications(user_id, unread_only, limit)

    def mark_read(self, user_id: str, notification_id: str):
        if not self._mark_read(user_id, notification_id):
            raise NotFoundError("NotificationNotFound", f"Notification {notification_id} not found")

    def mark_all_read(self, user_id: str) -> int:
        """Returns how many notifications flipped to read."""
        return self._mark_all_read(user_id)

    def delete_notification(self, user_id: str, notification_id: str):
        if not self._delete_notification(user_id, notification_id):
            raise NotFoundError("NotificationNotFound", f"Notification {notification_id} not found")
        logger.debug(f"[NOTIFY] {user_id} deleted {notification_id}")

    def contacts_by_user(self, user_id: str, limit: int = 20) -> list:
        """Reveals this user paid for, most recent first."""
        return self._query_events(user_id, ActivityKind.CONTACT_REVEALED, limit)

    def contacts_for_vehicle(self, vehicle_id: str, limit: int = 20) -> list:
        """Reveals made against one vehicle, most recent first."""
        return self._query_vehicle_events(vehicle_id, ActivityKind.CONTACT_REVEALED, limit)

    def user_stats(self, user_id: str) -> UserStats:
        return UserStats(
            user_id=user_id,
            vehicles_searched=self._count_events(user_id, ActivityKind.VEHICLE_SEARCHED),
            times_contacted=self._count_notifications(user_id, NotificationKind.CONTACT_REQUEST),
            vehicles_registered=len(self._registry.list_by_owner(user_id)),
            contacts_revealed=self._count_events(user_id, ActivityKind.CONTACT_REVEALED),
            unread_notifications=self._count_notifications(user_id, unread_only=True),
        )

    # ── Storage primitives ────────────────────────────────────────────────

    @abstractmethod
    def _append_event(self, event: ActivityEvent):
        pass

    @abstractmethod
    def _query_events(self, user_id, kind, limit) -> list:
        """Most recent first. kind=None means every kind."""

    @abstractmethod
    def _query_vehicle_events(self, vehicle_id, kind, limit) -> list:
        pass

    @abstractmethod
    def _count_events(self, user_id, kind) -> int:
        pass

    @abstractmethod
    def _add_notification(self, notification: Notification):
        pass

    @abstractmethod
    def _query_notifications(self, user_id, unread_only, limit) -> list:
        pass

    @abstractmethod
    def _count_notifications(self, user_id, kind=None, unread_only=False) -> int:
        pass

    @abstractmethod
    def _mark_read(self, user_id, notification_id) -> bool:
        pass

    @abstractmethod
    def _mark_all_read(self, user_id) -> int:
        pass

    @abstractmethod
    def _delete_notification(self, user_id, notification_id) -> bool:
        pass


# ── In-memory ────────────────────────────────────────────────────────────────

class InMemoryActivityAggregator(ActivityAggregator):
    def __init__(self, registry):
        super().__init__(registry)
        self._events = []
        self._notifications = []
        self._guard = threading.Lock()

    def _append_event(self, event):
        with self._guard:
            self._events.append(event)

    def _matching_events(self, user_id, kind):
        with self._guard:
            events = list(self._events)
        return [e for e in reversed(events)
                if e.user_id == user_id and (kind is None or e.kind == kind)]

    def _query_events(self, user_id, kind, limit):
        return self._matching_events(user_id, kind)[:limit]

    def _query_vehicle_events(self, vehicle_id, kind, limit):
        with self._guard:
            events = list(self._events)
        return [e for e in reversed(events)
                if e.vehicle_id == vehicle_id and (kind is None or e.kind == kind)][:limit]

    def _count_events(self, user_id, kind):
        return len(self._matching_events(user_id, kind))

    def _add_notification(self, notification):
        with self._guard:
            self._notifications.append(notification)

    def _matching_notifications(self, user_id, kind=None, unread_only=False):
        with self._guard:
            notifications = list(self._notifications)
        return [n for n in reversed(notifications)
                if n.user_id == user_id
                and (kind is None or n.kind == kind)
                and not (unread_only and n.is_read)]

    def _query_notifications(self, user_id, unread_only, limit):
        return self._matching_notifications(user_id, unread_only=unread_only)[:limit]

    def _count_notifications(self, user_id, kind=None, unread_only=False):
        return len(self._matching_notifications(user_id, kind, unread_only))

    def _mark_read(self, user_id, notification_id):
        with self._guard:
            for i, n in enumerate(self._notifications):
                if n.notification_id == notification_id and n.user_id == user_id:
                    self._notifications[i] = replace(n, is_read=True)
                    return True
        return False

    def _mark_all_read(self, user_id):
        flipped = 0
        with self._guard:
            for i, n in enumerate(self._notifications):
                if n.user_id == user_id and not n.is_read:
                    self._notifications[i] = replace(n, is_read=True)
                    flipped += 1
        return flipped

    def _delete_notification(self, user_id, notification_id):
        with self._guard:
            for i, n in enumerate(self._notifications):
                if n.notification_id == notification_id and n.user_id == user_id:
                    del self._notifications[i]
                    return True
        return False


# ── SQLAlchemy ───────────────────────────────────────────────────────────────

def _to_event(row: EventRow) -> ActivityEvent:
    return ActivityEvent(
        event_id=row.id, kind=ActivityKind(row.kind), created_at=row.created_at,
        user_id=row.user_id, plate=row.plate, vehicle_id=row.vehicle_id, found=row.found,
    )


def _to_notification(row: NotificationRow) -> Notification:
    return Notification(
        notification_id=row.id, user_id=row.user_id, kind=NotificationKind(row.kind),
        message=row.message, created_at=row.created_at, is_read=bool(row.is_read),
    )


class SqlActivityAggregator(ActivityAggregator):
    def __init__(self, registry, session_factory):
        super().__init__(registry)
        self._session_factory = session_factory

    @retry_transient
    def _append_event(self, event):
        with self._session_factory() as db:
            db.add(EventRow(
                id=event.event_id, kind=event.kind.value, user_id=event.user_id, plate=event.plate,
                vehicle_id=event.vehicle_id, found=event.found, created_at=event.created_at,
            ))
            db.commit()

    def _events_query(self, db, user_id, kind):
        q = db.query(EventRow).filter(EventRow.user_id == user_id)
        if kind is not None:
            q = q.filter(EventRow.kind == kind.value)
        return q

    @retry_transient
    def _query_events(self, user_id, kind, limit):
        with self._session_factory() as db:
            rows = self._events_query(db, user_id, kind).order_by(EventRow.created_at.desc()).limit(limit).all()
            return [_to_event(r) for r in rows]

    @retry_transient
    def _query_vehicle_events(self, vehicle_id, kind, limit):
        with self._session_factory() as db:
            q = db.query(EventRow).filter(EventRow.vehicle_id == vehicle_id)
            if kind is not None:
                q = q.filter(EventRow.kind == kind.value)
            rows = q.order_by(EventRow.created_at.desc()).limit(limit).all()
            return [_to_event(r) for r in rows]

    @retry_transient
    def _count_events(self, user_id, kind):
        with self._session_factory() as db:
            return self._events_query(db, user_id, kind).with_entities(func.count(EventRow.id)).scalar() or 0

    @retry_transient
    def _add_notification(self, notification):
        with self._session_factory() as db:
            db.add(NotificationRow(
                id=notification.notification_id, user_id=notification.user_id,
                kind=notification.kind.value, message=notification.message,
                is_read=False, created_at=notification.created_at,
            ))
            db.commit()

    def _notifications_query(self, db, user_id, kind=None, unread_only=False):
        q = db.query(NotificationRow).filter(NotificationRow.user_id == user_id)
        if kind is not None:
            q = q.filter(NotificationRow.kind == NotificationKind(kind).value)
        if unread_only:
            q = q.filter(NotificationRow.is_read.is_(False))
        return q

    @retry_transient
    def _query_notifications(self, user_id, unread_only, limit):
        with self._session_factory() as db:
            rows = (self._notifications_query(db, user_id, unread_only=unread_only)
                    .order_by(NotificationRow.created_at.desc()).limit(limit).all())
            return [_to_notification(r) for r in rows]

    @retry_transient
    def _count_notifications(self, user_id, kind=None, unread_only=False):
        with self._session_factory() as db:
            q = self._notifications_query(db, user_id, kind, unread_only)
            return q.with_entities(func.count(NotificationRow.id)).scalar() or 0

    @retry_transient
    def _mark_read(self, user_id, notification_id):
        with self._session_factory() as db:
            updated = db.query(NotificationRow).filter(
                NotificationRow.id == notification_id, NotificationRow.user_id == user_id
            ).update({NotificationRow.is_read: True})
            db.commit()
            return updated > 0

    @retry_transient
    def _mark_all_read(self, user_id):
        with self._session_factory() as db:
            updated = db.query(NotificationRow).filter(
                NotificationRow.user_id == user_id, NotificationRow.is_read.is_(False)
            ).update({NotificationRow.is_read: True}, synchronize_session=False)
            db.commit()
            return updated

    @retry_transient
    def _delete_notification(self, user_id, notification_id):
        with self._session_factory() as db:
            deleted = db.query(NotificationRow).filter(
                NotificationRow.id == notification_id, NotificationRow.user_id == user_id
            ).delete(synchronize_session=False)
            db.commit()
            return deleted > 0
