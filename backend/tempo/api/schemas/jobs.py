"""Schemas for job operations endpoints."""
from __future__ import annotations

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    job: Literal["sweep", "expiry", "health_snapshots"]
    user_id: Optional[UUID] = None


class JobRunResponse(BaseModel):
    job: str
    users_processed: int
    proposals_created: int = 0
    snapshots_written: int = 0
    proposals_resolved: int = 0
    request_id: str
