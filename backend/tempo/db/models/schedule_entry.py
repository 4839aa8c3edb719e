"""Schedule placement ORM model (one row per dated occurrence of a task)."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, Time, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class ScheduleEntry(Base):
    __tablename__ = "task_schedule"
    __table_args__ = (
        Index("ix_task_schedule_task_id", "task_id"),
        Index("ix_task_schedule_user_date", "user_id", "date"),
        Index("ix_task_schedule_plan_date", "plan_id", "date"),
        CheckConstraint("end_time > start_time", name="ck_task_schedule_time_order"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    rescheduled_from = Column(Date, nullable=True)
    reschedule_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_rescheduled_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
