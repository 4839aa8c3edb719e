"""Plan intake, lifecycle, milestones and adjustment history routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from tempo.api.schemas.plans import (
    FreeTaskRequest,
    FreeTaskResponse,
    HistoryEntryPayload,
    HistoryResponse,
    MilestoneListResponse,
    MilestoneStatusPayload,
    PlanCreateRequest,
    PlanResponse,
    PlanStatusRequest,
    PlanSummary,
)
from tempo.api.schemas.schedule import ScheduleEntrySummary
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric, timed_operation
from tempo.observability.tracing import trace
from tempo.services import plan_intake, scheduling_history
from tempo.services.milestone_tracker import plan_milestones
from tempo.services.plan_intake import (
    GeneratedMilestone,
    GeneratedPlacement,
    GeneratedPlan,
    GeneratedTask,
)

router = APIRouter()


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED, tags=["plans"])
def create_plan(
    payload: PlanCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> PlanResponse:
    """Persist a generated plan with its milestones, tasks and placements."""
    request_id = getattr(http_request.state, "request_id", None)
    generated = GeneratedPlan(
        goal_text=payload.goal_text,
        start_date=payload.start_date,
        end_date=payload.end_date,
        milestones=[GeneratedMilestone(name=m.name, target_date=m.target_date) for m in payload.milestones],
        tasks=[
            GeneratedTask(
                name=t.name,
                estimated_duration_minutes=t.estimated_duration_minutes,
                priority=t.priority,
                milestone_idx=t.milestone_idx,
                placements=[GeneratedPlacement(p.date, p.start_time, p.end_time) for p in t.placements],
            )
            for t in payload.tasks
        ],
    )
    metadata = {"route": "/plans", "tasks": len(payload.tasks), "replace_active": payload.replace_active}
    with timed_operation("plan.create", metadata), trace(
        "plan.create",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        plan = plan_intake.ingest_generated_plan(db, payload.user_id, generated, payload.replace_active)
    return PlanResponse(plan=PlanSummary.model_validate(plan), request_id=request_id or "")


@router.get("/plans/{plan_id}", response_model=PlanResponse, tags=["plans"])
def read_plan(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> PlanResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.get", metadata={"plan_id": str(plan_id)}, user_id=str(user_id), request_id=request_id):
        plan = plan_intake.get_plan(db, user_id, plan_id)
    return PlanResponse(plan=PlanSummary.model_validate(plan), request_id=request_id or "")


@router.patch("/plans/{plan_id}/status", response_model=PlanResponse, tags=["plans"])
def update_plan_status(
    plan_id: UUID,
    payload: PlanStatusRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> PlanResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "plan.status",
        metadata={"plan_id": str(plan_id), "status": payload.status},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        plan = plan_intake.set_plan_status(db, payload.user_id, plan_id, payload.status)
    log_metric("plan.status.changed", 1, metadata={"status": payload.status})
    return PlanResponse(plan=PlanSummary.model_validate(plan), request_id=request_id or "")


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["plans"])
def remove_plan(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Response:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.delete", metadata={"plan_id": str(plan_id)}, user_id=str(user_id), request_id=request_id):
        plan_intake.delete_plan(db, user_id, plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/plans/{plan_id}/milestones", response_model=MilestoneListResponse, tags=["plans"])
def list_milestones(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> MilestoneListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.milestones", metadata={"plan_id": str(plan_id)}, user_id=str(user_id), request_id=request_id):
        plan_intake.get_plan(db, user_id, plan_id)
        statuses = plan_milestones(db, plan_id)
    return MilestoneListResponse(
        plan_id=plan_id,
        milestones=[MilestoneStatusPayload.model_validate(item) for item in statuses],
        request_id=request_id or "",
    )


@router.get("/plans/{plan_id}/history", response_model=HistoryResponse, tags=["plans"])
def list_history(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> HistoryResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("plan.history", metadata={"plan_id": str(plan_id)}, user_id=str(user_id), request_id=request_id):
        plan_intake.get_plan(db, user_id, plan_id)
        entries = scheduling_history.list_entries(db, plan_id)
        summary = scheduling_history.summarize(db, plan_id)
    return HistoryResponse(
        plan_id=plan_id,
        summary=summary,
        entries=[HistoryEntryPayload.model_validate(entry) for entry in entries],
        request_id=request_id or "",
    )


@router.post("/tasks/free", response_model=FreeTaskResponse, status_code=status.HTTP_201_CREATED, tags=["plans"])
def create_free_task(
    payload: FreeTaskRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> FreeTaskResponse:
    """Create a task outside any plan with a single placement."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("task.free.create", metadata={"date": payload.date.isoformat()}, user_id=str(payload.user_id), request_id=request_id):
        entry = plan_intake.create_free_task(
            db,
            payload.user_id,
            payload.name,
            payload.duration_minutes,
            payload.priority,
            payload.date,
            payload.start_time,
        )
    return FreeTaskResponse(
        task_id=entry.task_id,
        entry=ScheduleEntrySummary.model_validate(entry),
        request_id=request_id or "",
    )
