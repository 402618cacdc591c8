"""
Background task: periodic reconcile, persisting next_run in DB.
"""
import logging
from typing import Any, Dict, Optional

from prayer_scheduler.core.task import BaseTask, TaskType
from prayer_scheduler.prayer.triggers import TriggerSources

DEFAULT_INTERVAL_SECONDS = 6 * 3600

logger = logging.getLogger(__name__)


class RefreshTask(BaseTask):
    """Run the periodic trigger; refresh.time (daily, UTC) wins over refresh.interval_seconds."""

    task_name = "prayer_refresh"

    def __init__(self, triggers: TriggerSources, refresh_config: Optional[Dict[str, Any]] = None):
        schedule_type, schedule_config = self._schedule_from_config(refresh_config or {})
        super().__init__(self.task_name, schedule_type, schedule_config)
        self.triggers = triggers

    def _schedule_from_config(self, config: Dict[str, Any]) -> tuple:
        schedule_time = config.get("time")
        if schedule_time:
            try:
                parts = str(schedule_time).strip().split(":")
                hour = int(parts[0]) if parts else 0
                minute = int(parts[1]) if len(parts) > 1 else 0
                return TaskType.DAILY, {"time": f"{hour:02d}:{minute:02d}"}
            except (ValueError, IndexError):
                logger.warning(f"Invalid refresh time {schedule_time!r}, using interval")
        interval = int(config.get("interval_seconds", DEFAULT_INTERVAL_SECONDS))
        return TaskType.INTERVAL_SECONDS, {"interval_seconds": max(60, interval)}

    def run(self) -> None:
        result = self.triggers.on_periodic()
        if result.partial:
            self.logger.info(f"Periodic refresh left {len(result.partial_failures)} events unarmed")
