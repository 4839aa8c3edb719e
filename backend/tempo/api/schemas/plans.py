"""Schemas for plan intake, lifecycle, milestones and history."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tempo.api.schemas.schedule import ScheduleEntrySummary


class PlacementPayload(BaseModel):
    date: date
    start_time: time
    end_time: time


class MilestonePayload(BaseModel):
    name: str = Field(min_length=1)
    target_date: Optional[date] = None


class TaskPayload(BaseModel):
    name: str = Field(min_length=1)
    estimated_duration_minutes: Optional[int] = Field(default=None, gt=0)
    priority: int = Field(default=3, ge=1, le=5)
    milestone_idx: Optional[int] = Field(default=None, ge=0)
    placements: List[PlacementPayload] = []


class PlanCreateRequest(BaseModel):
    user_id: UUID
    goal_text: str
    start_date: date
    end_date: date
    milestones: List[MilestonePayload] = []
    tasks: List[TaskPayload] = []
    replace_active: bool = False


class PlanSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    goal_text: str
    start_date: date
    end_date: date
    original_end_date: Optional[date]
    status: str
    created_at: datetime
    updated_at: datetime


class PlanResponse(BaseModel):
    plan: PlanSummary
    request_id: str


class PlanStatusRequest(BaseModel):
    user_id: UUID
    status: Literal["active", "paused", "completed"]


class MilestoneStatusPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    idx: int
    target_date: Optional[date]
    task_count: int
    occurrences: int
    completed_occurrences: int
    complete: bool


class MilestoneListResponse(BaseModel):
    plan_id: UUID
    milestones: List[MilestoneStatusPayload]
    request_id: str


class HistoryEntryPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    adjustment_date: date
    old_end_date: Optional[date]
    new_end_date: Optional[date]
    days_extended: int
    tasks_rescheduled: int
    reason: Dict[str, Any]
    created_at: datetime


class HistoryResponse(BaseModel):
    plan_id: UUID
    summary: str
    entries: List[HistoryEntryPayload]
    request_id: str


class FreeTaskRequest(BaseModel):
    user_id: UUID
    name: str = Field(min_length=1)
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    priority: Optional[int] = Field(default=None, ge=1, le=5)
    date: date
    start_time: time


class FreeTaskResponse(BaseModel):
    task_id: UUID
    entry: ScheduleEntrySummary
    request_id: str
