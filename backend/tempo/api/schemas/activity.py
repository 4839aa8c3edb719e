"""Schemas for the activity feed."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel


class ActivityItem(BaseModel):
    id: UUID
    action_type: str
    summary: str
    payload: Dict[str, Any]
    created_at: datetime


class ActivityListResponse(BaseModel):
    user_id: UUID
    items: List[ActivityItem]
    next_cursor: Optional[str]
    request_id: str
