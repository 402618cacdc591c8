# tests/test_store.py

from datetime import datetime, timezone

import pytest

from prayer_scheduler.core.db import Base, get_engine
from prayer_scheduler.core.errors import StoreCorruption
from prayer_scheduler.prayer.events import ArmedNotification

UTC = timezone.utc


def _armed(event_id="2026-10-17:Asr", handle="h1"):
    return ArmedNotification(
        event_id=event_id,
        handle=handle,
        scheduled_at=datetime(2026, 10, 17, 19, 45, tzinfo=UTC),
        label="Time for Asr prayer",
        armed_at=datetime(2026, 10, 17, 14, 0, tzinfo=UTC),
    )


def test_add_and_load_keeps_aware_utc_instants(store):
    store.add(_armed())

    loaded = store.load()

    assert list(loaded) == ["2026-10-17:Asr"]
    assert loaded["2026-10-17:Asr"] == _armed()
    assert loaded["2026-10-17:Asr"].scheduled_at.tzinfo == UTC


def test_add_replaces_existing_record(store):
    store.add(_armed(handle="h1"))
    store.add(_armed(handle="h2"))

    assert store.load()["2026-10-17:Asr"].handle == "h2"


def test_remove_missing_record_is_ignored(store):
    store.add(_armed())

    store.remove("2026-10-18:Fajr")
    store.remove("2026-10-17:Asr")

    assert store.load() == {}


def test_mark_fired(store):
    store.add(_armed())
    fired = datetime(2026, 10, 17, 19, 45, 2, tzinfo=UTC)

    assert store.mark_fired("2026-10-17:Asr", fired) is True
    assert store.mark_fired("2026-10-17:Isha", fired) is False
    assert store.load()["2026-10-17:Asr"].fired_at == fired


def test_database_errors_become_store_corruption(store):
    store.add(_armed())
    Base.metadata.drop_all(get_engine())

    with pytest.raises(StoreCorruption):
        store.load()
    with pytest.raises(StoreCorruption):
        store.add(_armed())
    with pytest.raises(StoreCorruption):
        store.remove("2026-10-17:Asr")
