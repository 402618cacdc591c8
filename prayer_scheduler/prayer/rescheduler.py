"""
Rescheduler: recompute the prayer window and bring the armed notifications in
line with it using the fewest gateway calls.

One reconcile pass:
  1. compute the window (today and the following days in the location's
     timezone, minus disabled prayers and anything older than the grace window)
  2. read the gateway's pending handles, then load the store; a stored handle the
     gateway no longer has is drift and gets re-armed
  3. cancel what is armed but no longer wanted, arm what is wanted but not armed

Provider and store failures abort the pass. Gateway failures are recorded per
event and retried on the next trigger.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from prayer_scheduler.core.errors import (
    GatewayError,
    NotificationNotFound,
    ProviderFailure,
    StoreCorruption,
)
from prayer_scheduler.prayer.events import (
    ArmedNotification,
    Location,
    PrayerEvent,
    Preferences,
    ReconcileResult,
)
from prayer_scheduler.prayer.gateway import NotificationGateway
from prayer_scheduler.prayer.prayer_base import PrayerTimeProvider, resolve_timezone
from prayer_scheduler.prayer.store import ScheduleStore


def check_window(events: List[PrayerEvent]) -> None:
    """Raise ProviderFailure unless instants strictly increase and event ids are unique."""
    seen = set()
    previous: Optional[PrayerEvent] = None
    for event in events:
        if event.event_id in seen:
            raise ProviderFailure(f"Duplicate event {event.event_id} in prayer window")
        seen.add(event.event_id)
        if previous is not None and event.scheduled_at <= previous.scheduled_at:
            raise ProviderFailure(
                f"Prayer window out of order: {previous.event_id} at {previous.scheduled_at}"
                f" is not before {event.event_id} at {event.scheduled_at}"
            )
        previous = event


class Rescheduler:
    def __init__(self, provider: PrayerTimeProvider, store: ScheduleStore, gateway: NotificationGateway):
        self.provider = provider
        self.store = store
        self.gateway = gateway
        self.logger = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()

    def set_provider(self, provider: PrayerTimeProvider) -> None:
        """Swap the provider between passes, never during one."""
        with self._lock:
            self.provider = provider

    def compute_window(self, now: datetime, location: Location, preferences: Preferences) -> List[PrayerEvent]:
        """Events to keep armed at now, ordered by instant."""
        tz = resolve_timezone(location)
        today = now.astimezone(tz).date()
        events: List[PrayerEvent] = []
        for offset in range(preferences.horizon_days):
            day = today + timedelta(days=offset)
            try:
                day_events = self.provider.compute_times(day, location)
            except ProviderFailure:
                raise
            except Exception as e:
                raise ProviderFailure(f"Prayer times failed for {day} at {location.name}: {e}") from e
            events.extend(day_events)
        check_window(events)

        cutoff = now - timedelta(seconds=preferences.grace_seconds)
        enabled = set(preferences.prayers)
        return [
            event._replace(
                scheduled_at=event.scheduled_at.astimezone(timezone.utc),
                label=preferences.format_label(event.prayer),
            )
            for event in events
            if event.prayer in enabled and event.scheduled_at > cutoff
        ]

    def reconcile(
        self,
        now: datetime,
        location: Location,
        preferences: Preferences,
        trigger: str = "manual",
    ) -> ReconcileResult:
        """Run one diff-and-apply pass. Only one pass runs at a time."""
        if now.tzinfo is None:
            raise ValueError("reconcile needs a timezone-aware now")
        with self._lock:
            return self._reconcile(now, location, preferences, trigger)

    def _reconcile(self, now: datetime, location: Location, preferences: Preferences, trigger: str) -> ReconcileResult:
        result = ReconcileResult(trigger=trigger, started_at=now)
        window = self.compute_window(now, location, preferences)
        result.window_size = len(window)
        wanted: Dict[str, PrayerEvent] = {event.event_id: event for event in window}

        # Pending first: a delivery landing in between is then visible as fired_at
        pending = self._list_pending()
        armed = self.store.load()
        armed = self._heal_drift(armed, pending, result)

        to_cancel = [a for event_id, a in armed.items() if event_id not in wanted]
        # Same event id at a new instant (location or timezone changed): supersede
        to_cancel.extend(
            a for event_id, a in armed.items()
            if event_id in wanted and a.fired_at is None and self._superseded(a, wanted[event_id])
        )
        for notification in to_cancel:
            self._cancel(notification, result)
            armed.pop(notification.event_id)

        for event in window:
            if event.event_id not in armed:
                self._arm(event, now, result)

        level = logging.WARNING if result.partial else logging.INFO
        self.logger.log(
            level,
            f"Reconcile ({trigger}) at {now.isoformat()} for {location.name}: window={result.window_size} "
            f"armed={len(result.armed)} cancelled={len(result.cancelled) + len(result.cancel_failures)} "
            f"drifted={len(result.drifted)} failed={len(result.partial_failures)}",
        )
        return result

    @staticmethod
    def _superseded(armed: ArmedNotification, event: PrayerEvent) -> bool:
        return armed.scheduled_at != event.scheduled_at or armed.label != event.label

    def _list_pending(self) -> Optional[Set[str]]:
        try:
            return self.gateway.list_pending()
        except GatewayError as e:
            self.logger.warning(f"Cannot list pending notifications, trusting store: {e}")
            return None

    def _heal_drift(
        self,
        armed: Dict[str, ArmedNotification],
        pending: Optional[Set[str]],
        result: ReconcileResult,
    ) -> Dict[str, ArmedNotification]:
        """Drop records whose handle the gateway no longer has so they get re-armed."""
        if pending is None:
            return armed

        healthy = {}
        for event_id, notification in armed.items():
            if notification.fired_at is not None or notification.handle in pending:
                healthy[event_id] = notification
                continue
            self.logger.info(f"Drift: {event_id} ({notification.handle}) is no longer pending")
            self.store.remove(event_id)
            result.drifted.append(event_id)
        return healthy

    def _cancel(self, notification: ArmedNotification, result: ReconcileResult) -> None:
        if notification.fired_at is not None:
            # Already delivered, nothing left to cancel
            self.store.remove(notification.event_id)
            return
        try:
            self.gateway.cancel(notification.handle)
            result.cancelled.append(notification.event_id)
        except NotificationNotFound:
            result.cancelled.append(notification.event_id)
        except GatewayError as e:
            self.logger.warning(f"Cancel failed for {notification.event_id}: {e}")
            result.cancel_failures[notification.event_id] = str(e)
        self.store.remove(notification.event_id)

    def _arm(self, event: PrayerEvent, now: datetime, result: ReconcileResult) -> None:
        try:
            handle = self.gateway.schedule(event.event_id, event.scheduled_at, event.label)
        except GatewayError as e:
            self.logger.warning(f"Arming {event.event_id} failed, will retry next trigger: {e}")
            result.partial_failures[event.event_id] = str(e)
            return

        try:
            self.store.add(ArmedNotification(
                event_id=event.event_id,
                handle=handle,
                scheduled_at=event.scheduled_at,
                label=event.label,
                armed_at=now,
            ))
        except StoreCorruption:
            # Keep gateway and store consistent: nothing armed that the store does not know
            try:
                self.gateway.cancel(handle)
            except GatewayError as e:
                self.logger.error(f"Could not roll back {event.event_id} ({handle}): {e}")
            raise
        result.armed.append(event.event_id)
