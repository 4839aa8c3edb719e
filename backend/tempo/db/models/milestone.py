"""Milestone ORM model.

Completion is derived from the milestone's tasks; there is deliberately no
stored flag here.
"""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, ForeignKey, Index, Integer, Text
from sqlalchemy.dialects.postgresql import UUID

from tempo.db.base import Base


class Milestone(Base):
    __tablename__ = "milestones"
    __table_args__ = (Index("ix_milestones_plan_id", "plan_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    idx = Column(Integer, nullable=False, default=0)
    name = Column(Text, nullable=False)
    target_date = Column(Date, nullable=True)
