"""
NotificationGateway: the notification subsystem as the rescheduler sees it.

TimerNotificationGateway arms an in-process threading.Timer per notification.
Its pending set lives in memory only, so after a restart every stored record
looks like drift and the boot reconcile re-arms it.
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from prayer_scheduler.core.errors import GatewayUnavailable, NotificationNotFound


class NotificationGateway(ABC):
    @abstractmethod
    def schedule(self, event_id: str, instant: datetime, label: str) -> str:
        """Arm a notification; return its handle. Raises GatewayError."""
        pass

    @abstractmethod
    def cancel(self, handle: str) -> None:
        """Disarm a notification. Raises NotificationNotFound for unknown handles."""
        pass

    @abstractmethod
    def list_pending(self) -> Set[str]:
        """Handles of notifications that have not fired yet."""
        pass


def log_notification(event_id: str, label: str) -> None:
    logging.getLogger("PrayerNotification").info(f"{label} ({event_id})")


class TimerNotificationGateway(NotificationGateway):
    def __init__(self, on_fire: Optional[Callable[[str, str], None]] = None):
        self.on_fire = on_fire or log_notification
        self.logger = logging.getLogger(self.__class__.__name__)
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._closed = False

    def schedule(self, event_id: str, instant: datetime, label: str) -> str:
        delay = max(0.0, (instant - datetime.now(timezone.utc)).total_seconds())
        handle = uuid.uuid4().hex
        timer = threading.Timer(delay, self._fire, args=(handle, event_id, label))
        timer.daemon = True
        with self._lock:
            if self._closed:
                raise GatewayUnavailable("Notification gateway is shut down")
            self._timers[handle] = timer
            timer.start()
        self.logger.debug(f"Armed {event_id} in {delay:.0f}s as {handle}")
        return handle

    def cancel(self, handle: str) -> None:
        with self._lock:
            timer = self._timers.pop(handle, None)
        if timer is None:
            raise NotificationNotFound(handle)
        timer.cancel()

    def list_pending(self) -> Set[str]:
        with self._lock:
            return set(self._timers)

    def _fire(self, handle: str, event_id: str, label: str) -> None:
        with self._lock:
            if handle not in self._timers:
                return
        # Still listed as pending until the callback has recorded delivery
        try:
            self.on_fire(event_id, label)
        except Exception as e:
            self.logger.error(f"Notification callback failed for {event_id}: {e}", exc_info=True)
        finally:
            with self._lock:
                self._timers.pop(handle, None)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
