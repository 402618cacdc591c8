"""
Service layer: save and load reconcile history and armed notifications from DB.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select

from prayer_scheduler.core.db import session_scope
from prayer_scheduler.prayer.events import ReconcileResult
from prayer_scheduler.prayer.models import ArmedNotificationRecord, ReconcileRun


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def record_reconcile_run(
    trigger: str,
    started_at: datetime,
    result: Optional[ReconcileResult] = None,
    error: Optional[str] = None,
) -> None:
    """Append one history row. result is None when the pass failed hard (error set)."""
    run = ReconcileRun(trigger=trigger, started_at=_naive_utc(started_at), error=error)
    if result is not None:
        run.window_size = result.window_size
        run.armed_count = len(result.armed)
        run.cancelled_count = len(result.cancelled) + len(result.cancel_failures)
        run.drifted_count = len(result.drifted)
        run.failed_count = len(result.partial_failures)
        run.partial = result.partial
        run.skipped_reason = result.skipped_reason
    with session_scope() as session:
        session.add(run)


def get_recent_runs(limit: int = 20) -> List[ReconcileRun]:
    """Most recent reconcile runs first."""
    with session_scope() as session:
        return list(
            session.execute(
                select(ReconcileRun)
                .order_by(ReconcileRun.started_at.desc(), ReconcileRun.id.desc())
                .limit(limit)
            )
            .scalars().all()
        )


def get_armed_records() -> List[ArmedNotificationRecord]:
    """Armed notifications ordered by scheduled time (for API serialization)."""
    with session_scope() as session:
        return list(
            session.execute(
                select(ArmedNotificationRecord).order_by(ArmedNotificationRecord.scheduled_at)
            )
            .scalars().all()
        )
