import requests
from datetime import date, datetime, time
from typing import Dict, Any, List, Optional
import logging
from abc import ABC, abstractmethod
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from prayer_scheduler.core.cache_helper import CacheHelper
from prayer_scheduler.core.errors import ProviderFailure
from prayer_scheduler.prayer.events import PRAYER_NAMES, Location, PrayerEvent, make_event_id


def resolve_timezone(location: Location) -> ZoneInfo:
    try:
        return ZoneInfo(location.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ProviderFailure(f"Unknown timezone {location.timezone!r} for {location.name}") from e


def _parse_hh_mm(value: str) -> time:
    # Aladhan answers look like "05:12" or "05:12 (CDT)"
    hour, minute = map(int, str(value).strip()[:5].split(':'))
    return time(hour, minute)


class PrayerTimeProvider(ABC):
    """Base class for prayer time calculation backends"""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def get_wall_times(self, day: date, location: Location) -> Dict[str, time]:
        """Local wall-clock time of each prayer on day at location.
        Raises:
            ProviderFailure: when times cannot be computed
        """
        pass

    def compute_times(self, day: date, location: Location) -> List[PrayerEvent]:
        """Prayer events for day, each resolved against the timezone rules in force on that day"""
        if not (-90 <= location.latitude <= 90) or not (-180 <= location.longitude <= 180):
            raise ProviderFailure(
                f"Invalid coordinates ({location.latitude}, {location.longitude}) for {location.name}"
            )
        tz = resolve_timezone(location)
        wall_times = dict(self.get_wall_times(day, location))
        wall_times.update(self._test_overrides())

        events = []
        for prayer in PRAYER_NAMES:
            if prayer not in wall_times:
                continue
            local = datetime.combine(day, wall_times[prayer], tzinfo=tz)
            events.append(PrayerEvent(make_event_id(day, prayer), local, prayer, prayer))
        events.sort(key=lambda e: e.scheduled_at)
        self.logger.debug(f"Computed {len(events)} prayer times for {day} at {location.name}")
        return events

    def _test_overrides(self) -> Dict[str, time]:
        """test_schedule.times overrides single prayers, e.g. to hear a notification now"""
        overrides = {}
        for prayer, time_str in (self.config.get('test_schedule') or {}).get('times', {}).items():
            try:
                overrides[prayer] = _parse_hh_mm(time_str)
                self.logger.info(f"Overriding {prayer} with test time: {time_str}")
            except (ValueError, TypeError):
                self.logger.error(f"Invalid test time format for {prayer}: {time_str}")
        return overrides


class FixedTimesProvider(PrayerTimeProvider):
    """Same wall-clock times every day, from provider.fixed_times"""

    def get_wall_times(self, day: date, location: Location) -> Dict[str, time]:
        fixed = self.config.get('fixed_times') or {}
        try:
            return {prayer: _parse_hh_mm(value) for prayer, value in fixed.items()}
        except (ValueError, TypeError) as e:
            raise ProviderFailure(f"Invalid fixed_times entry: {e}") from e


class AladhanProvider(PrayerTimeProvider):
    """Prayer times backend using api.aladhan.com"""

    DEFAULT_BASE_URL = "https://api.aladhan.com/v1"

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.base_url = config.get('base_url', self.DEFAULT_BASE_URL).rstrip('/')
        self.timeout = config.get('timeout', 10)
        self.cache_helper = CacheHelper(config.get('cache_dir'), "prayer_times")

    def get_wall_times(self, day: date, location: Location) -> Dict[str, time]:
        cache_key = (
            f"prayer_times_{day.isoformat()}_{location.latitude:.4f}_{location.longitude:.4f}"
            f"_{location.calculation_method}_{location.timezone}"
        )
        timings = self.cache_helper.get_cached_content(cache_key, max_age_days=7)
        if timings:
            self.logger.debug(f"Got from cache: {cache_key}")
        else:
            timings = self._fetch_timings(day, location)
            self.cache_helper.save_to_cache(cache_key, timings)

        try:
            return {prayer: _parse_hh_mm(timings[prayer]) for prayer in PRAYER_NAMES if prayer in timings}
        except (ValueError, TypeError) as e:
            raise ProviderFailure(f"Malformed prayer times for {day}: {timings}") from e

    def _fetch_timings(self, day: date, location: Location) -> Dict[str, str]:
        url = f"{self.base_url}/timings/{day.strftime('%d-%m-%Y')}"
        params = {
            'latitude': location.latitude,
            'longitude': location.longitude,
            'method': location.calculation_method,
            'timezonestring': location.timezone,
        }
        self.logger.info(f"Making API request to {url} with params {params}")
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            timings = response.json()['data']['timings']
        except requests.RequestException as e:
            raise ProviderFailure(f"Prayer times request failed for {day}: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderFailure(f"Unexpected prayer times response for {day}: {e}") from e
        return {prayer: timings[prayer] for prayer in PRAYER_NAMES if prayer in timings}


_PROVIDERS = {
    "aladhan": AladhanProvider,
    "fixed": FixedTimesProvider,
}


def create_provider(config: Dict[str, Any], cache_dir: Optional[str] = None) -> PrayerTimeProvider:
    """Factory: provider instance for config['backend'] (default aladhan)."""
    backend_type = (config.get("backend") or "aladhan").lower()
    cls = _PROVIDERS.get(backend_type)
    if cls is None:
        raise ValueError(f"Unknown prayer times backend: {backend_type}")
    cfg = dict(config)
    if cache_dir and "cache_dir" not in cfg:
        cfg["cache_dir"] = cache_dir
    return cls(cfg)
