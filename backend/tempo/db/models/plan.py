"""Plan ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Index, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow

PLAN_STATUSES = ("active", "paused", "completed")


class Plan(Base):
    __tablename__ = "plans"
    __table_args__ = (
        Index("ix_plans_user_id", "user_id"),
        # At most one active plan per owner.
        Index(
            "uq_plans_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=sa_text("status = 'active'"),
            sqlite_where=sa_text("status = 'active'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    goal_text = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    original_end_date = Column(Date, nullable=True)
    status = Column(String(length=20), nullable=False, default="active", server_default=sa_text("'active'"))
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
