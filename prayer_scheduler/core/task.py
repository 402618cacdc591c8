"""
Base task type and abstract BaseTask with next_run persistence in DB.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select

from prayer_scheduler.core.db import session_scope
from prayer_scheduler.core.models import TaskSchedule

logger = logging.getLogger(__name__)


class TaskType:
    """Schedule kind for tasks."""
    DAILY = "daily"
    HOURLY = "hourly"
    INTERVAL_SECONDS = "interval_seconds"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _parse_hh_mm(time_str: Any) -> tuple:
    parts = str(time_str).strip().split(":")
    hour = int(parts[0]) if parts and parts[0] else 0
    minute = int(parts[1]) if len(parts) > 1 else 0
    return hour, minute


def compute_next_run(
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    last_run: Optional[datetime],
) -> datetime:
    """Compute next run (naive UTC) from schedule_type, schedule_config, and last_run."""
    if last_run is None:
        last_run = _utc_now()

    if schedule_type == TaskType.DAILY and schedule_config:
        hour, minute = _parse_hh_mm(schedule_config.get("time", "00:00"))
        next_run = last_run.replace(hour=hour, minute=minute, second=0, microsecond=0)
        if next_run <= last_run:
            next_run += timedelta(days=1)
        return next_run

    if schedule_type == TaskType.HOURLY:
        return last_run + timedelta(hours=1)

    if schedule_type == TaskType.INTERVAL_SECONDS and schedule_config:
        sec = int(schedule_config.get("interval_seconds", 86400))
        return last_run + timedelta(seconds=sec)

    return last_run + timedelta(days=1)


def get_next_run_from_db(task_name: str) -> Optional[datetime]:
    """Read next_run_at for a task. None if no row or next_run_at is null (task will run immediately)."""
    try:
        with session_scope() as session:
            row = session.execute(
                select(TaskSchedule).where(TaskSchedule.task_name == task_name)
            ).scalars().first()
            if row and row.next_run_at is not None:
                return row.next_run_at
    except Exception as e:
        logger.debug(f"get_next_run_from_db {task_name}: {e}")
    return None


def upsert_task_schedule(
    task_name: str,
    schedule_type: str,
    schedule_config: Optional[Dict[str, Any]],
    next_run_at: Optional[datetime] = None,
) -> None:
    """Create or update a TaskSchedule row. A new row keeps next_run_at null so the task runs immediately."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.task_name == task_name)
        ).scalars().first()
        now = _utc_now()
        if row:
            if row.schedule_type != schedule_type or row.schedule_config != schedule_config:
                # Schedule changed in config: recompute from last run
                row.next_run_at = compute_next_run(schedule_type, schedule_config, row.last_run_at)
            row.schedule_type = schedule_type
            row.schedule_config = schedule_config
            if next_run_at is not None:
                row.next_run_at = next_run_at
            row.updated_at = now
        else:
            session.add(TaskSchedule(
                task_name=task_name,
                schedule_type=schedule_type,
                schedule_config=schedule_config,
                next_run_at=next_run_at,
                created_at=now,
                updated_at=now,
            ))


def update_after_run(task_name: str, error: Optional[str] = None) -> None:
    """Update last_run_at, last_error and next_run_at after a task run."""
    with session_scope() as session:
        row = session.execute(
            select(TaskSchedule).where(TaskSchedule.task_name == task_name)
        ).scalars().first()
        if not row:
            return
        now = _utc_now()
        row.last_run_at = now
        row.last_error = error
        row.next_run_at = compute_next_run(row.schedule_type, row.schedule_config, now)
        row.updated_at = now


class BaseTask(ABC):
    """
    Abstract base for background tasks. Subclasses implement run();
    base helps with get_next_run and persisting next_run in DB.
    """

    def __init__(self, task_name: str, schedule_type: str, schedule_config: Optional[Dict[str, Any]] = None):
        self.task_name = task_name
        self.schedule_type = schedule_type
        self.schedule_config = schedule_config or {}
        self.logger = logging.getLogger(self.__class__.__name__)

    def get_next_run(self, last_run: Optional[datetime] = None) -> datetime:
        """Compute next run time from schedule_type and schedule_config."""
        return compute_next_run(self.schedule_type, self.schedule_config, last_run)

    def ensure_scheduled(self, next_run_at: Optional[datetime] = None) -> None:
        """Ensure the TaskSchedule row exists so the next run survives restarts."""
        upsert_task_schedule(
            self.task_name,
            self.schedule_type,
            self.schedule_config,
            next_run_at=next_run_at,
        )

    def __call__(self) -> None:
        error = None
        try:
            self.run()
        except Exception as e:
            error = str(e)
            raise
        finally:
            update_after_run(self.task_name, error)

    @abstractmethod
    def run(self) -> None:
        """Execute the task. next_run is persisted by __call__ whether run() succeeds or not."""
        pass
