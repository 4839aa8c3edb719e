"""Completion evidence for one scheduled occurrence of a task."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class CompletionRecord(Base):
    __tablename__ = "task_completions"
    __table_args__ = (
        # A task belongs to at most one plan, so this is the (task, plan, date) key
        # without a nullable column in it.
        UniqueConstraint("task_id", "scheduled_date", name="uq_task_completions_task_date"),
        Index("ix_task_completions_plan_id", "plan_id"),
        Index("ix_task_completions_user_id", "user_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=True)
    scheduled_date = Column(Date, nullable=False)
    completed_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
    actual_duration_minutes = Column(Integer, nullable=True)
