"""Version counter per derived-state scope."""
from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base
from tempo.db.types import UTCDateTime, utcnow


class ScopeVersion(Base):
    __tablename__ = "derived_scope_versions"

    # "<user_id>:<plan_id>" or "<user_id>:free" for free-mode tasks.
    scope_key = Column(String(80), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=0, server_default="0")
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )
