import logging
import sys
import threading
import copy
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .config import Config
from .db import init_db, dispose_db
from .task_manager import TaskManager
from .time_source import SystemTimeSource, TimeSource
from prayer_scheduler.prayer.gateway import NotificationGateway, TimerNotificationGateway, log_notification
from prayer_scheduler.prayer.prayer_base import PrayerTimeProvider, create_provider
from prayer_scheduler.prayer.rescheduler import Rescheduler
from prayer_scheduler.prayer.store import ScheduleStore
from prayer_scheduler.prayer.task import RefreshTask
from prayer_scheduler.prayer.triggers import TriggerSources


class SchedulerApp:
    """Wires config, store, provider, gateway, rescheduler and trigger sources."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Config] = None,
        time_source: Optional[TimeSource] = None,
        gateway: Optional[NotificationGateway] = None,
        db_url: Optional[str] = None,
        setup_logging: bool = True,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = config or Config(config_path=config_path)
        if setup_logging:
            self._setup_logging()

        # Initialize database (before the store so tables exist)
        init_db(self.config.data, db_url=db_url)

        self.time_source = time_source or SystemTimeSource()
        self.store = ScheduleStore()
        self.gateway = gateway or TimerNotificationGateway(on_fire=self._on_notification_fired)
        self.provider = self._create_provider(self.config.data)
        self.rescheduler = Rescheduler(self.provider, self.store, self.gateway)
        self.triggers = TriggerSources(self.rescheduler, self.config, self.time_source)
        self.config.register_change_callback(self._on_config_changed)

        self.task_manager = TaskManager()
        self.refresh_task = RefreshTask(self.triggers, self.config.get_section("refresh"))
        self._stop_event = threading.Event()

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        logging_config = self.config.get_section("logging")
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = logging_config.get("file")
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        self.logger.info(f"Logging initialized at {logging.getLevelName(root_logger.level)}")

    def _provider_settings(self, config_data: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
        provider_section = config_data.get("provider")
        cache_section = config_data.get("cache")
        return (
            copy.deepcopy(provider_section) if isinstance(provider_section, dict) else {},
            cache_section.get("directory") if isinstance(cache_section, dict) else None,
        )

    def _create_provider(self, config_data: Dict[str, Any]) -> PrayerTimeProvider:
        settings = self._provider_settings(config_data)
        provider = create_provider(*settings)
        self._provider_config = settings
        return provider

    def _on_config_changed(self, config_data: Dict[str, Any]) -> None:
        """Rebuild the provider when its settings changed, then reconcile"""
        if self._provider_settings(config_data) != self._provider_config:
            self.logger.info("Provider settings changed - recreating prayer times provider")
            try:
                self.provider = self._create_provider(config_data)
            except ValueError as e:
                self.logger.error(f"Keeping previous provider: {e}")
            else:
                self.rescheduler.set_provider(self.provider)
        self.triggers.on_preferences_changed(config_data)

    def _on_notification_fired(self, event_id: str, label: str) -> None:
        log_notification(event_id, label)
        self.store.mark_fired(event_id, self.time_source.now())

    def start(self, boot_action: str = "boot") -> None:
        """Boot reconcile, then the refresh timer and the API."""
        try:
            self.triggers.on_boot(boot_action)
        except Exception as e:
            self.logger.error(f"Boot reconcile failed: {e}")

        self.refresh_task.ensure_scheduled(next_run_at=self.refresh_task.get_next_run())
        self.task_manager.register_task(self.refresh_task.task_name, self.refresh_task)
        self.task_manager.schedule_registered_task(self.refresh_task.task_name)

        from prayer_scheduler.api.server import run_api_server
        run_api_server(self)

    def run(self, boot_action: str = "boot") -> None:
        self.start(boot_action)
        self.logger.info("Prayer scheduler running, press Ctrl-C to stop")
        try:
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted")
        finally:
            self.cleanup()

    def stop(self) -> None:
        self._stop_event.set()

    def cleanup(self) -> None:
        self.task_manager.stop()
        self.config.cleanup()
        if isinstance(self.gateway, TimerNotificationGateway):
            self.gateway.close()
        dispose_db()
