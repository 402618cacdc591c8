"""
Value types shared by providers, store, gateway and rescheduler.

PrayerEvent and ArmedNotification are immutable; a recomputation produces
new values instead of mutating old ones. Location and Preferences are read
from config and validated with pydantic.
"""
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRAYER_NAMES = ("Fajr", "Dhuhr", "Asr", "Maghrib", "Isha")

PrayerEvent = namedtuple(
    "PrayerEvent",
    [
        "event_id",      # "<yyyy-mm-dd>:<prayer>", stable across recomputations
        "scheduled_at",  # timezone-aware instant
        "label",         # notification text
        "prayer",        # "Fajr", ...
    ],
)

ArmedNotification = namedtuple(
    "ArmedNotification",
    [
        "event_id",
        "handle",        # opaque id returned by the gateway
        "scheduled_at",  # timezone-aware UTC instant
        "label",
        "armed_at",      # timezone-aware UTC instant
        "fired_at",      # timezone-aware UTC instant or None while pending
    ],
    defaults=(None,),
)


def make_event_id(day: date, prayer: str) -> str:
    return f"{day.isoformat()}:{prayer}"


class Location(BaseModel):
    """Saved location. Ranges and timezone are checked by the provider, not here."""

    model_config = ConfigDict(frozen=True)

    name: str = "Unknown Location"
    latitude: float
    longitude: float
    timezone: str
    calculation_method: int = 2


class Preferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    prayers: List[str] = Field(default_factory=lambda: list(PRAYER_NAMES))
    grace_seconds: int = Field(default=300, ge=0)
    horizon_days: int = Field(default=2, ge=1, le=7)
    label: str = "Time for {prayer} prayer"

    @field_validator("prayers")
    @classmethod
    def _known_prayers(cls, value: List[str]) -> List[str]:
        unknown = [p for p in value if p not in PRAYER_NAMES]
        if unknown:
            raise ValueError(f"unknown prayers: {unknown}")
        return value

    def format_label(self, prayer: str) -> str:
        return self.label.format(prayer=prayer)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile pass."""

    trigger: str
    started_at: datetime
    window_size: int = 0
    armed: List[str] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    drifted: List[str] = field(default_factory=list)
    partial_failures: Dict[str, str] = field(default_factory=dict)
    cancel_failures: Dict[str, str] = field(default_factory=dict)
    skipped_reason: Optional[str] = None

    @property
    def partial(self) -> bool:
        return bool(self.partial_failures)

    @property
    def noop(self) -> bool:
        return self.skipped_reason is not None

    @property
    def gateway_calls(self) -> int:
        """schedule + cancel calls issued (list_pending not counted)."""
        return (len(self.armed) + len(self.partial_failures)
                + len(self.cancelled) + len(self.cancel_failures))

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "started_at": self.started_at.isoformat(),
            "window_size": self.window_size,
            "armed": list(self.armed),
            "cancelled": list(self.cancelled),
            "drifted": list(self.drifted),
            "partial_failures": dict(self.partial_failures),
            "cancel_failures": dict(self.cancel_failures),
            "skipped_reason": self.skipped_reason,
            "partial": self.partial,
        }
