"""Schemas for scheduling preferences."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class SmartSchedulingRequest(BaseModel):
    user_id: UUID
    enabled: bool


class SmartSchedulingResponse(BaseModel):
    user_id: UUID
    enabled: bool
    request_id: str
