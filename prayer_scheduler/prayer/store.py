"""
ScheduleStore: durable record of armed notifications, keyed by event id.
Any database failure is raised as StoreCorruption; nothing is cleared on error.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError

from prayer_scheduler.core.db import session_scope
from prayer_scheduler.core.errors import StoreCorruption
from prayer_scheduler.prayer.events import ArmedNotification
from prayer_scheduler.prayer.models import ArmedNotificationRecord


def _to_naive_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _to_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    return dt.replace(tzinfo=timezone.utc) if dt is not None else None


def _to_armed(row: ArmedNotificationRecord) -> ArmedNotification:
    return ArmedNotification(
        event_id=row.event_id,
        handle=row.handle,
        scheduled_at=_to_aware_utc(row.scheduled_at),
        label=row.label,
        armed_at=_to_aware_utc(row.armed_at),
        fired_at=_to_aware_utc(row.fired_at),
    )


class ScheduleStore:
    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def load(self) -> Dict[str, ArmedNotification]:
        """All armed notifications by event id."""
        try:
            with session_scope() as session:
                rows = session.execute(select(ArmedNotificationRecord)).scalars().all()
                return {row.event_id: _to_armed(row) for row in rows}
        except SQLAlchemyError as e:
            raise StoreCorruption(f"Cannot read armed notifications: {e}") from e

    def add(self, armed: ArmedNotification) -> None:
        """Insert or replace the record for armed.event_id."""
        try:
            with session_scope() as session:
                session.merge(ArmedNotificationRecord(
                    event_id=armed.event_id,
                    handle=armed.handle,
                    scheduled_at=_to_naive_utc(armed.scheduled_at),
                    label=armed.label,
                    armed_at=_to_naive_utc(armed.armed_at),
                    fired_at=_to_naive_utc(armed.fired_at) if armed.fired_at else None,
                ))
        except SQLAlchemyError as e:
            raise StoreCorruption(f"Cannot record {armed.event_id}: {e}") from e

    def remove(self, event_id: str) -> None:
        """Delete the record for event_id; missing records are ignored."""
        try:
            with session_scope() as session:
                session.execute(
                    delete(ArmedNotificationRecord).where(ArmedNotificationRecord.event_id == event_id)
                )
        except SQLAlchemyError as e:
            raise StoreCorruption(f"Cannot remove {event_id}: {e}") from e

    def mark_fired(self, event_id: str, fired_at: Optional[datetime] = None) -> bool:
        """Flag a notification as delivered. Returns False if no record exists."""
        fired_at = fired_at or datetime.now(timezone.utc)
        try:
            with session_scope() as session:
                row = session.get(ArmedNotificationRecord, event_id)
                if row is None:
                    return False
                row.fired_at = _to_naive_utc(fired_at)
                return True
        except SQLAlchemyError as e:
            raise StoreCorruption(f"Cannot mark {event_id} fired: {e}") from e
