"""Schemas for completion toggles."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ToggleRequest(BaseModel):
    user_id: UUID
    task_id: UUID
    plan_id: Optional[UUID] = None
    scheduled_date: date
    actual_duration_minutes: Optional[int] = Field(default=None, gt=0)


class ToggleResponse(BaseModel):
    task_id: UUID
    scheduled_date: date
    completed: bool
    changed: bool
    request_id: str
