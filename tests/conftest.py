# tests/conftest.py

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from prayer_scheduler.core.db import dispose_db, init_db
from prayer_scheduler.prayer.events import Location, Preferences
from prayer_scheduler.prayer.prayer_base import FixedTimesProvider
from prayer_scheduler.prayer.rescheduler import Rescheduler
from prayer_scheduler.prayer.store import ScheduleStore

from .fakes import FakeGateway

NEW_YORK = ZoneInfo("America/New_York")

FIXED_TIMES = {
    "Fajr": "05:30",
    "Dhuhr": "12:30",
    "Asr": "15:45",
    "Maghrib": "18:10",
    "Isha": "19:30",
}


def local(*args) -> datetime:
    """Aware datetime in New York wall-clock time."""
    return datetime(*args, tzinfo=NEW_YORK)


@pytest.fixture()
def db(tmp_path: Path):
    """Fresh SQLite database per test."""
    dispose_db()
    init_db(db_url=f"sqlite:///{tmp_path / 'scheduler.sqlite3'}")
    yield
    dispose_db()


@pytest.fixture()
def location() -> Location:
    return Location(name="New York", latitude=40.7128, longitude=-74.0060, timezone="America/New_York")


@pytest.fixture()
def preferences() -> Preferences:
    return Preferences()


@pytest.fixture()
def provider() -> FixedTimesProvider:
    return FixedTimesProvider({"fixed_times": dict(FIXED_TIMES)})


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def store(db) -> ScheduleStore:
    return ScheduleStore()


@pytest.fixture()
def rescheduler(provider, store, gateway) -> Rescheduler:
    return Rescheduler(provider, store, gateway)


@pytest.fixture()
def now() -> datetime:
    """Saturday 2026-10-17 10:00 in New York: Fajr already past, Dhuhr next."""
    return local(2026, 10, 17, 10, 0)
