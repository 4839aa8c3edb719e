"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, ForeignKey, Index, Integer, Text, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_id", "user_id"),
        Index("ix_tasks_plan_id", "plan_id"),
        Index("ix_tasks_milestone_id", "milestone_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Null for free-mode tasks owned directly by the user.
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=True)
    milestone_id = Column(UUID(as_uuid=True), ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    idx = Column(Integer, nullable=False, default=0)
    name = Column(Text, nullable=False)
    estimated_duration_minutes = Column(Integer, nullable=True)
    priority = Column(Integer, nullable=False, default=3)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
