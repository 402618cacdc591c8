from .events import ArmedNotification, Location, PrayerEvent, Preferences, ReconcileResult
from .rescheduler import Rescheduler

__all__ = ["ArmedNotification", "Location", "PrayerEvent", "Preferences", "ReconcileResult", "Rescheduler"]
