# tests/test_gateway.py

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from prayer_scheduler.core.errors import GatewayUnavailable, NotificationNotFound
from prayer_scheduler.prayer.gateway import TimerNotificationGateway

UTC = timezone.utc


@pytest.fixture()
def timer_gateway():
    gateway = TimerNotificationGateway()
    yield gateway
    gateway.close()


def test_schedule_and_cancel(timer_gateway):
    later = datetime.now(UTC) + timedelta(hours=1)

    handle = timer_gateway.schedule("2026-10-17:Asr", later, "Time for Asr prayer")
    assert timer_gateway.list_pending() == {handle}

    timer_gateway.cancel(handle)
    assert timer_gateway.list_pending() == set()


def test_cancel_unknown_handle_raises_not_found(timer_gateway):
    with pytest.raises(NotificationNotFound):
        timer_gateway.cancel("nope")


def test_due_notification_fires_and_leaves_pending():
    fired = []
    done = threading.Event()

    def on_fire(event_id, label):
        fired.append((event_id, label))
        done.set()

    gateway = TimerNotificationGateway(on_fire=on_fire)
    try:
        gateway.schedule("2026-10-17:Fajr", datetime.now(UTC) - timedelta(seconds=5), "Time for Fajr prayer")
        assert done.wait(5)
        assert fired == [("2026-10-17:Fajr", "Time for Fajr prayer")]
        deadline = datetime.now(UTC) + timedelta(seconds=5)
        while gateway.list_pending() and datetime.now(UTC) < deadline:
            time.sleep(0.01)
        assert gateway.list_pending() == set()
    finally:
        gateway.close()


def test_closed_gateway_is_unavailable():
    gateway = TimerNotificationGateway()
    gateway.schedule("2026-10-17:Isha", datetime.now(UTC) + timedelta(hours=1), "x")
    gateway.close()

    assert gateway.list_pending() == set()
    with pytest.raises(GatewayUnavailable):
        gateway.schedule("2026-10-18:Fajr", datetime.now(UTC) + timedelta(hours=9), "x")
