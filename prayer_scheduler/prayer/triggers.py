"""
Trigger sources: boot, periodic refresh, preference change and on-demand.
Each one reads location/preferences and the current time, runs one reconcile
and records the run.
"""
import logging
from typing import Any, Callable, Dict, Optional

from prayer_scheduler.core.errors import (
    USER_NOTICE,
    ConfigError,
    ConfigMissing,
    ProviderFailure,
    StoreCorruption,
)
from prayer_scheduler.core.time_source import TimeSource
from prayer_scheduler.prayer.events import ReconcileResult
from prayer_scheduler.prayer.rescheduler import Rescheduler
from prayer_scheduler.prayer.service import record_reconcile_run

BOOT_ACTIONS = frozenset({
    "android.intent.action.BOOT_COMPLETED",
    "android.intent.action.QUICKBOOT_POWERON",
    "boot",
})


def log_notice(message: str) -> None:
    logging.getLogger("UserNotice").error(message)


class TriggerSources:
    def __init__(
        self,
        rescheduler: Rescheduler,
        config: Any,
        time_source: TimeSource,
        notice: Optional[Callable[[str], None]] = None,
    ):
        """config is anything with get_location() and get_preferences() (see core.config.Config)"""
        self.rescheduler = rescheduler
        self.config = config
        self.time_source = time_source
        self.notice = notice or log_notice
        self.logger = logging.getLogger(self.__class__.__name__)

    def on_boot(self, action: str = "boot") -> Optional[ReconcileResult]:
        """Boot-completed signal. Other broadcast actions are ignored (returns None)."""
        if action not in BOOT_ACTIONS:
            self.logger.debug(f"Ignoring broadcast action: {action}")
            return None
        self.logger.info(f"Boot completed ({action}), re-arming prayer notifications")
        return self.run("boot")

    def on_periodic(self) -> ReconcileResult:
        return self.run("periodic")

    def on_preferences_changed(self, config_data: Optional[Dict[str, Any]] = None) -> Optional[ReconcileResult]:
        """Config change callback. Failures are reported by run(), not raised into the watcher."""
        try:
            return self.run("preferences")
        except (ConfigError, ProviderFailure, StoreCorruption):
            return None

    def reconcile_now(self) -> ReconcileResult:
        return self.run("manual")

    def run(self, trigger: str) -> ReconcileResult:
        """
        One reconcile for trigger. Missing location is a no-op result.
        Raises:
            ConfigError, ProviderFailure, StoreCorruption: after the user notice is emitted
        """
        now = self.time_source.now()
        try:
            location = self.config.get_location()
            if location is None:
                raise ConfigMissing("No location configured")
            preferences = self.config.get_preferences()
            result = self.rescheduler.reconcile(now, location, preferences, trigger=trigger)
        except ConfigMissing as e:
            self.logger.info(f"Reconcile ({trigger}) skipped: {e}")
            result = ReconcileResult(trigger=trigger, started_at=now, skipped_reason=str(e))
        except (ConfigError, ProviderFailure) as e:
            self.logger.error(f"Reconcile ({trigger}) failed: {e}")
            self._report(trigger, now, e)
            raise
        except StoreCorruption as e:
            self.logger.error(f"Reconcile ({trigger}) aborted, keeping last known schedule: {e}")
            self._report(trigger, now, e)
            raise

        self._record(trigger, now, result=result)
        return result

    def _report(self, trigger: str, now, error: Exception) -> None:
        self.notice(USER_NOTICE)
        self._record(trigger, now, error=f"{error.__class__.__name__}: {error}")

    def _record(self, trigger: str, now, result: Optional[ReconcileResult] = None, error: Optional[str] = None) -> None:
        try:
            record_reconcile_run(trigger, now, result=result, error=error)
        except Exception as e:
            # History is best effort; the reconcile outcome stands
            self.logger.warning(f"Could not record reconcile run: {e}")
