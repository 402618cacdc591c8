"""
SQLAlchemy models for the prayer scheduler: armed notifications (the
ScheduleStore table) and one history row per reconcile trigger.
"""
from sqlalchemy import Column, String, DateTime, Integer, Boolean, Text

from prayer_scheduler.core.db import Base


class ArmedNotificationRecord(Base):
    """One notification armed with the gateway. Datetimes are naive UTC."""
    __tablename__ = "armed_notifications"

    event_id = Column(String(64), primary_key=True)  # "2026-10-17:Fajr"
    handle = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime(timezone=False), nullable=False, index=True)
    label = Column(String(255), nullable=False)
    armed_at = Column(DateTime(timezone=False), nullable=False)
    fired_at = Column(DateTime(timezone=False), nullable=True)  # set when the gateway delivered it


class ReconcileRun(Base):
    """One trigger invocation and its outcome."""
    __tablename__ = "reconcile_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trigger = Column(String(64), nullable=False, index=True)
    started_at = Column(DateTime(timezone=False), nullable=False, index=True)
    window_size = Column(Integer, nullable=False, default=0)
    armed_count = Column(Integer, nullable=False, default=0)
    cancelled_count = Column(Integer, nullable=False, default=0)
    drifted_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    partial = Column(Boolean, nullable=False, default=False)
    skipped_reason = Column(String(255), nullable=True)
    error = Column(Text, nullable=True)  # hard failure (provider/config/store)
