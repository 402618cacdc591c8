"""
Wall-clock time for triggers. All instants are timezone-aware UTC.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional


class TimeSource(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware (UTC)."""
        pass

    @property
    def timezone(self) -> tzinfo:
        """Host timezone."""
        return datetime.now().astimezone().tzinfo


class SystemTimeSource(TimeSource):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedTimeSource(TimeSource):
    """Time source pinned to an instant; advance() moves it forward."""

    def __init__(self, instant: datetime, tz: Optional[tzinfo] = None):
        if instant.tzinfo is None:
            raise ValueError("FixedTimeSource needs a timezone-aware instant")
        self._instant = instant.astimezone(timezone.utc)
        self._tz = tz or timezone.utc

    def now(self) -> datetime:
        return self._instant

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def set(self, instant: datetime) -> None:
        self._instant = instant.astimezone(timezone.utc)

    def advance(self, **kwargs) -> datetime:
        self._instant += timedelta(**kwargs)
        return self._instant
