"""Per-user scheduling preferences."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Integer, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class UserPreferences(Base):
    __tablename__ = "user_preferences"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    smart_scheduling_enabled = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    # Minutes after midnight; null falls back to the configured defaults.
    workday_start_minute = Column(Integer, nullable=True)
    workday_end_minute = Column(Integer, nullable=True)
    lunch_start_minute = Column(Integer, nullable=True)
    lunch_end_minute = Column(Integer, nullable=True)
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
