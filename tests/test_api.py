# tests/test_api.py

from datetime import timezone

import pytest
import yaml
from fastapi.testclient import TestClient

from prayer_scheduler.api.server import create_app
from prayer_scheduler.core.app import SchedulerApp
from prayer_scheduler.core.config import Config
from prayer_scheduler.core.db import dispose_db
from prayer_scheduler.core.errors import USER_NOTICE
from prayer_scheduler.core.time_source import FixedTimeSource

from .conftest import FIXED_TIMES, local
from .fakes import FakeGateway


@pytest.fixture()
def scheduler_app(tmp_path, now):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "location": {"name": "New York", "latitude": 40.7128, "longitude": -74.006,
                     "timezone": "America/New_York"},
        "provider": {"backend": "fixed", "fixed_times": dict(FIXED_TIMES)},
        "refresh": {"interval_seconds": 3600},
    }))
    dispose_db()
    app = SchedulerApp(
        config=Config(config_path=str(config_file), watch=False),
        time_source=FixedTimeSource(now),
        gateway=FakeGateway(),
        db_url=f"sqlite:///{tmp_path / 'api.sqlite3'}",
        setup_logging=False,
    )
    yield app
    app.cleanup()


@pytest.fixture()
def client(scheduler_app):
    return TestClient(create_app(scheduler_app))


def test_reconcile_then_list_armed(client):
    response = client.post("/api/prayer/reconcile")

    assert response.status_code == 200
    body = response.json()
    assert body["trigger"] == "manual"
    assert len(body["armed"]) == 9
    assert body["partial"] is False

    armed = client.get("/api/prayer/armed").json()
    assert [a["event_id"] for a in armed][:2] == ["2026-10-17:Dhuhr", "2026-10-17:Asr"]

    again = client.post("/api/prayer/reconcile").json()
    assert again["armed"] == [] and again["cancelled"] == []


def test_runs_endpoint_lists_history(client):
    client.post("/api/prayer/reconcile")
    client.post("/api/prayer/reconcile")

    runs = client.get("/api/prayer/runs", params={"limit": 1}).json()

    assert len(runs) == 1
    assert runs[0]["trigger"] == "manual"
    assert runs[0]["armed_count"] == 0


def test_bad_location_returns_notice(client, scheduler_app):
    response = client.put("/api/prayer/location", json={
        "name": "Bad", "latitude": 91.0, "longitude": 0.0, "timezone": "UTC",
    })

    assert response.status_code == 502
    assert response.json()["detail"]["notice"] == USER_NOTICE
    assert scheduler_app.config.get_location().name == "Bad"


def test_location_update_moves_notifications(client, scheduler_app):
    client.post("/api/prayer/reconcile")

    response = client.put("/api/prayer/location", json={
        "name": "Chicago", "latitude": 41.88, "longitude": -87.63, "timezone": "America/Chicago",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["trigger"] == "preferences"
    assert len(body["cancelled"]) == 9
    assert len(scheduler_app.gateway.pending) == 9


def test_tasks_endpoint(client, scheduler_app):
    scheduler_app.refresh_task.ensure_scheduled()

    body = client.get("/api/tasks").json()

    assert body["db_schedules"][0]["task_name"] == "prayer_refresh"
    assert body["db_schedules"][0]["schedule_config"] == {"interval_seconds": 3600}
    assert body["active_timers"] == []


def test_provider_edit_rearms_at_new_time(client, scheduler_app, tmp_path):
    client.post("/api/prayer/reconcile")
    config_file = tmp_path / "config.yaml"
    data = yaml.safe_load(config_file.read_text())
    data["provider"]["fixed_times"]["Dhuhr"] = "13:45"
    config_file.write_text(yaml.dump(data))

    scheduler_app.config.reload()

    armed = scheduler_app.store.load()
    assert armed["2026-10-17:Dhuhr"].scheduled_at == local(2026, 10, 17, 13, 45).astimezone(timezone.utc)
    assert armed["2026-10-17:Asr"].scheduled_at == local(2026, 10, 17, 15, 45).astimezone(timezone.utc)
    assert scheduler_app.rescheduler.provider is scheduler_app.provider


def test_unknown_backend_keeps_previous_provider(client, scheduler_app, tmp_path):
    previous = scheduler_app.provider
    config_file = tmp_path / "config.yaml"
    data = yaml.safe_load(config_file.read_text())
    data["provider"]["backend"] = "sundial"
    config_file.write_text(yaml.dump(data))

    scheduler_app.config.reload()

    assert scheduler_app.rescheduler.provider is previous
    assert len(scheduler_app.store.load()) == 9
