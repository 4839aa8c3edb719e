"""Schedule placement API routes."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.schedule import (
    MoveRequest,
    PlaceRequest,
    ScheduleEntryResponse,
    ScheduleEntrySummary,
    ScheduleListResponse,
)
from tempo.core.errors import ValidationError
from tempo.db.deps import get_db
from tempo.db.models.task import Task
from tempo.observability.metrics import log_metric, timed_operation
from tempo.observability.tracing import trace
from tempo.services import schedule_store
from tempo.services.plan_intake import get_plan
from tempo.services.user_service import load_owned

router = APIRouter()


@router.post("/schedule", response_model=ScheduleEntryResponse, status_code=201, tags=["schedule"])
def place_task(
    payload: PlaceRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ScheduleEntryResponse:
    """Add a placement for an existing task."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {"route": "/schedule", "task_id": str(payload.task_id), "date": payload.date.isoformat()}
    with timed_operation("schedule.place", metadata), trace(
        "schedule.place",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        entry = schedule_store.place_task(
            db,
            payload.user_id,
            payload.task_id,
            payload.date,
            payload.start_time,
            payload.end_time,
        )
    return ScheduleEntryResponse(entry=ScheduleEntrySummary.model_validate(entry), request_id=request_id or "")


@router.patch("/schedule/{entry_id}", response_model=ScheduleEntryResponse, tags=["schedule"])
def move_entry(
    entry_id: UUID,
    payload: MoveRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ScheduleEntryResponse:
    """Move a placement to another date or time within its plan."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {"route": f"/schedule/{entry_id}", "entry_id": str(entry_id), "date": payload.date.isoformat()}
    with timed_operation("schedule.move", metadata), trace(
        "schedule.move",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        entry = schedule_store.move_entry(
            db,
            payload.user_id,
            entry_id,
            payload.date,
            payload.start_time,
            payload.end_time,
        )
    return ScheduleEntryResponse(entry=ScheduleEntrySummary.model_validate(entry), request_id=request_id or "")


@router.get("/plans/{plan_id}/schedule", response_model=ScheduleListResponse, tags=["schedule"])
def list_plan_schedule(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the plan"),
    from_: Optional[date] = Query(default=None, alias="from"),
    to: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
) -> ScheduleListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    if from_ and to and to < from_:
        raise ValidationError("'to' must not be before 'from'")
    with trace(
        "schedule.list_plan",
        metadata={"plan_id": str(plan_id), "from": from_, "to": to},
        user_id=str(user_id),
        request_id=request_id,
    ):
        get_plan(db, user_id, plan_id)
        entries = schedule_store.list_by_plan(db, plan_id, from_, to)
    log_metric("schedule.list_plan.count", len(entries), metadata={"plan_id": str(plan_id)})
    return ScheduleListResponse(
        entries=[ScheduleEntrySummary.model_validate(entry) for entry in entries],
        request_id=request_id or "",
    )


@router.get("/tasks/{task_id}/schedule", response_model=ScheduleListResponse, tags=["schedule"])
def list_task_schedule(
    task_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the task"),
    db: Session = Depends(get_db),
) -> ScheduleListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("schedule.list_task", metadata={"task_id": str(task_id)}, user_id=str(user_id), request_id=request_id):
        load_owned(db, Task, task_id, user_id, label="Task", key="task_id")
        entries = schedule_store.list_by_task(db, task_id)
    return ScheduleListResponse(
        entries=[ScheduleEntrySummary.model_validate(entry) for entry in entries],
        request_id=request_id or "",
    )
