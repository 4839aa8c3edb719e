"""Daily health snapshot rows (rolling metric history, always recomputable)."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, Float, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class HealthSnapshotRecord(Base):
    __tablename__ = "health_snapshots"
    __table_args__ = (
        UniqueConstraint("plan_id", "snapshot_date", name="uq_health_snapshots_plan_date"),
        Index("ix_health_snapshots_user_plan", "user_id", "plan_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    snapshot_date = Column(Date, nullable=False)
    health_score = Column(Float, nullable=False)
    color_state = Column(String(length=20), nullable=False)
    has_scheduled_tasks = Column(Boolean, nullable=False, default=False)
    progress = Column(Float, nullable=False, default=0.0)
    consistency = Column(Float, nullable=False, default=0.0)
    efficiency = Column(Float, nullable=True)
    streak_days = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
