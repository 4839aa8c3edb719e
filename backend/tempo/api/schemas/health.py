"""Schemas for plan health."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class HealthSnapshotPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    plan_id: Optional[UUID]
    as_of: date
    has_scheduled_tasks: bool
    health_score: float
    color_state: str
    progress: float
    consistency: float
    efficiency: Optional[float]
    streak_days: int
    adjustments: int
    total_occurrences: int
    completed_occurrences: int
    overdue_occurrences: int
    breakdown: Dict[str, float]
    computed_at: datetime


class HealthHistoryPoint(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    snapshot_date: date
    health_score: float
    color_state: str
    progress: float
    consistency: float
    efficiency: Optional[float]
    streak_days: int


class HealthResponse(BaseModel):
    user_id: UUID
    snapshot: HealthSnapshotPayload
    history: List[HealthHistoryPoint]
    insights: List[str]
    request_id: str
