# tests/test_providers.py

from datetime import date, datetime, timezone

import pytest
import requests

from prayer_scheduler.core.errors import ProviderFailure
from prayer_scheduler.prayer import prayer_base
from prayer_scheduler.prayer.events import Location
from prayer_scheduler.prayer.prayer_base import AladhanProvider, FixedTimesProvider, create_provider

UTC = timezone.utc

ALADHAN_TIMINGS = {
    "Fajr": "06:12 (CDT)",
    "Sunrise": "07:24 (CDT)",
    "Dhuhr": "12:59 (CDT)",
    "Asr": "16:16 (CDT)",
    "Sunset": "18:35 (CDT)",
    "Maghrib": "18:35 (CDT)",
    "Isha": "19:48 (CDT)",
    "Midnight": "00:59 (CDT)",
}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Bad Request")

    def json(self):
        return self.payload


@pytest.fixture()
def plano() -> Location:
    return Location(name="Plano", latitude=33.0198, longitude=-96.6989, timezone="America/Chicago")


@pytest.fixture()
def aladhan_calls(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return FakeResponse({"code": 200, "data": {"timings": ALADHAN_TIMINGS}})

    monkeypatch.setattr(prayer_base.requests, "get", fake_get)
    return calls


def test_aladhan_parses_the_five_prayers(tmp_path, plano, aladhan_calls):
    provider = AladhanProvider({"cache_dir": str(tmp_path)})

    events = provider.compute_times(date(2026, 10, 17), plano)

    assert [e.event_id for e in events] == [
        "2026-10-17:Fajr", "2026-10-17:Dhuhr", "2026-10-17:Asr", "2026-10-17:Maghrib", "2026-10-17:Isha",
    ]
    assert events[0].scheduled_at == datetime(2026, 10, 17, 11, 12, tzinfo=UTC)
    url, params = aladhan_calls[0]
    assert url.endswith("/timings/17-10-2026")
    assert params == {
        "latitude": 33.0198, "longitude": -96.6989, "method": 2, "timezonestring": "America/Chicago",
    }


def test_aladhan_answers_are_cached_per_day_and_location(tmp_path, plano, aladhan_calls):
    provider = AladhanProvider({"cache_dir": str(tmp_path)})

    provider.compute_times(date(2026, 10, 17), plano)
    provider.compute_times(date(2026, 10, 17), plano)
    provider.compute_times(date(2026, 10, 18), plano)

    assert len(aladhan_calls) == 2



def test_aladhan_cache_is_keyed_by_timezone(tmp_path, plano, aladhan_calls):
    provider = AladhanProvider({"cache_dir": str(tmp_path)})
    denver_clock = plano.model_copy(update={"timezone": "America/Denver"})

    provider.compute_times(date(2026, 10, 17), plano)
    provider.compute_times(date(2026, 10, 17), denver_clock)

    assert len(aladhan_calls) == 2
    assert aladhan_calls[1][1]["timezonestring"] == "America/Denver"

def test_aladhan_http_error_is_a_provider_failure(tmp_path, plano, monkeypatch):
    monkeypatch.setattr(
        prayer_base.requests, "get",
        lambda url, params=None, timeout=None: FakeResponse({"code": 400, "data": "bad"}, status_code=400),
    )
    provider = AladhanProvider({"cache_dir": str(tmp_path)})

    with pytest.raises(ProviderFailure):
        provider.compute_times(date(2026, 10, 17), plano)


def test_aladhan_network_error_is_a_provider_failure(tmp_path, plano, monkeypatch):
    def offline(url, params=None, timeout=None):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(prayer_base.requests, "get", offline)
    provider = AladhanProvider({"cache_dir": str(tmp_path)})

    with pytest.raises(ProviderFailure):
        provider.compute_times(date(2026, 10, 17), plano)


def test_invalid_coordinates_fail_before_any_request(tmp_path, aladhan_calls):
    provider = AladhanProvider({"cache_dir": str(tmp_path)})
    bad = Location(name="Bad", latitude=33.0, longitude=-200.0, timezone="America/Chicago")

    with pytest.raises(ProviderFailure):
        provider.compute_times(date(2026, 10, 17), bad)
    assert aladhan_calls == []


def test_fixed_times_resolve_against_the_day_offset(plano):
    provider = FixedTimesProvider({"fixed_times": {"Fajr": "06:00", "Isha": "20:00"}})

    before = provider.compute_times(date(2026, 10, 31), plano)
    after = provider.compute_times(date(2026, 11, 1), plano)

    assert before[0].scheduled_at.astimezone(UTC) == datetime(2026, 10, 31, 11, 0, tzinfo=UTC)
    assert after[0].scheduled_at.astimezone(UTC) == datetime(2026, 11, 1, 12, 0, tzinfo=UTC)


def test_test_schedule_overrides_one_prayer(plano):
    provider = FixedTimesProvider({
        "fixed_times": {"Fajr": "06:00", "Asr": "16:00"},
        "test_schedule": {"times": {"Asr": "15:02", "Isha": "not-a-time"}},
    })

    events = {e.prayer: e for e in provider.compute_times(date(2026, 10, 17), plano)}

    assert set(events) == {"Fajr", "Asr"}
    assert events["Asr"].scheduled_at.hour == 15 and events["Asr"].scheduled_at.minute == 2


def test_malformed_fixed_times_are_a_provider_failure(plano):
    provider = FixedTimesProvider({"fixed_times": {"Fajr": "dawn"}})

    with pytest.raises(ProviderFailure):
        provider.compute_times(date(2026, 10, 17), plano)


def test_create_provider(tmp_path):
    assert isinstance(create_provider({"backend": "fixed"}), FixedTimesProvider)
    aladhan = create_provider({}, cache_dir=str(tmp_path))
    assert isinstance(aladhan, AladhanProvider)
    assert aladhan.cache_helper.cache_dir.startswith(str(tmp_path))
    with pytest.raises(ValueError):
        create_provider({"backend": "moonsighting"})
