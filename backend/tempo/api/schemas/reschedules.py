"""Schemas for reschedule proposals and their resolution."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ProposalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    plan_id: Optional[UUID]
    schedule_entry_id: UUID
    original_date: date
    original_start_time: Optional[time]
    original_end_time: Optional[time]
    suggested_date: date
    suggested_start_time: time
    suggested_end_time: time
    applied_date: Optional[date]
    status: str
    resolution_source: Optional[str]
    created_at: datetime
    resolved_at: Optional[datetime]


class ProposalListResponse(BaseModel):
    proposals: List[ProposalSummary]
    request_id: str


class SweepRequest(BaseModel):
    user_id: UUID


class SweepResponse(BaseModel):
    user_id: UUID
    proposals_created: int
    scopes_failed: int
    proposals: List[ProposalSummary]
    request_id: str


class ApproveRequest(BaseModel):
    user_id: UUID
    target_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class RejectRequest(BaseModel):
    user_id: UUID


class ProposalOverridePayload(BaseModel):
    proposal_id: UUID
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class BatchApproveRequest(BaseModel):
    user_id: UUID
    plan_id: Optional[UUID] = None
    proposal_ids: Optional[List[UUID]] = None
    overrides: List[ProposalOverridePayload] = []


class ApprovalResponse(BaseModel):
    proposals: List[ProposalSummary]
    tasks_rescheduled: int
    days_extended: int
    new_end_date: Optional[date]
    history_id: Optional[UUID]
    outcome: Literal["applied", "already_approved", "nothing_pending"]
    request_id: str


class RejectResponse(BaseModel):
    proposal: ProposalSummary
    request_id: str
