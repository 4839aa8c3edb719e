"""Reschedule proposal ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Index, String, Text, Time, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow

PROPOSAL_STATUSES = ("pending", "approved", "rejected", "expired")
# resolution_source of a pending proposal closed because its occurrence was completed.
RESOLVED_BY_COMPLETION = "completed"


class RescheduleProposal(Base):
    __tablename__ = "reschedule_proposals"
    __table_args__ = (
        Index("ix_reschedule_proposals_user_status", "user_id", "status"),
        Index("ix_reschedule_proposals_task_date", "task_id", "original_date"),
        # Sweep dedup key: one open proposal per missed occurrence.
        Index(
            "uq_reschedule_proposals_pending_task_date",
            "task_id",
            "original_date",
            unique=True,
            postgresql_where=sa_text("status = 'pending'"),
            sqlite_where=sa_text("status = 'pending'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=True)
    schedule_entry_id = Column(UUID(as_uuid=True), ForeignKey("task_schedule.id", ondelete="CASCADE"), nullable=False)
    original_date = Column(Date, nullable=False)
    original_start_time = Column(Time, nullable=True)
    original_end_time = Column(Time, nullable=True)
    suggested_date = Column(Date, nullable=False)
    suggested_start_time = Column(Time, nullable=False)
    suggested_end_time = Column(Time, nullable=False)
    applied_date = Column(Date, nullable=True)
    status = Column(String(length=20), nullable=False, default="pending", server_default=sa_text("'pending'"))
    resolution_source = Column(String(length=20), nullable=True)
    reason = Column(Text, nullable=False, default="auto_reschedule_overdue")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
    resolved_at = Column(UTCDateTime, nullable=True)
