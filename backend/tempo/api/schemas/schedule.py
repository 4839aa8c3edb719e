"""Schemas for schedule placements."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ScheduleEntrySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    plan_id: Optional[UUID]
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    rescheduled_from: Optional[date]
    reschedule_count: int = 0
    last_rescheduled_at: Optional[datetime] = None
    updated_at: datetime


class PlaceRequest(BaseModel):
    user_id: UUID
    task_id: UUID
    date: date
    start_time: time
    end_time: time


class MoveRequest(BaseModel):
    user_id: UUID
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class ScheduleEntryResponse(BaseModel):
    entry: ScheduleEntrySummary
    request_id: str


class ScheduleListResponse(BaseModel):
    entries: List[ScheduleEntrySummary]
    request_id: str
