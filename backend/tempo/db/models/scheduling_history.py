"""Append-only audit of applied schedule adjustments."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, event, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import JSONBCompat, UTCDateTime, utcnow


class SchedulingHistoryEntry(Base):
    __tablename__ = "scheduling_history"
    __table_args__ = (
        Index("ix_scheduling_history_plan_id", "plan_id"),
        Index("ix_scheduling_history_user_id", "user_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=True)
    adjustment_date = Column(Date, nullable=False)
    old_end_date = Column(Date, nullable=True)
    new_end_date = Column(Date, nullable=True)
    days_extended = Column(Integer, nullable=False, default=0)
    tasks_rescheduled = Column(Integer, nullable=False, default=0)
    reason = Column(JSONBCompat, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())


class HistoryIsAppendOnly(RuntimeError):
    pass


@event.listens_for(SchedulingHistoryEntry, "before_update")
def _reject_history_update(mapper, connection, target):
    raise HistoryIsAppendOnly("scheduling_history rows cannot be updated")


@event.listens_for(SchedulingHistoryEntry, "before_delete")
def _reject_history_delete(mapper, connection, target):
    raise HistoryIsAppendOnly("scheduling_history rows are only removed with their plan")
