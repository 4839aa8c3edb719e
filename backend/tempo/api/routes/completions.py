"""Completion toggle route."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.completions import ToggleRequest, ToggleResponse
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric, timed_operation
from tempo.observability.tracing import trace
from tempo.services.completion_tracker import toggle

router = APIRouter()


@router.post("/completions/toggle", response_model=ToggleResponse, tags=["completions"])
def toggle_completion(
    payload: ToggleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ToggleResponse:
    """Mark one scheduled occurrence complete, or undo it."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata = {
        "route": "/completions/toggle",
        "task_id": str(payload.task_id),
        "scheduled_date": payload.scheduled_date.isoformat(),
    }
    with timed_operation("completion.toggle", metadata), trace(
        "completion.toggle",
        metadata=metadata,
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        result = toggle(
            db,
            user_id=payload.user_id,
            task_id=payload.task_id,
            plan_id=payload.plan_id,
            scheduled_date=payload.scheduled_date,
            actual_duration_minutes=payload.actual_duration_minutes,
        )
    log_metric("completion.toggle.changed", 1 if result.changed else 0, metadata={"task_id": str(payload.task_id)})
    return ToggleResponse(
        task_id=result.task_id,
        scheduled_date=result.scheduled_date,
        completed=result.completed,
        changed=result.changed,
        request_id=request_id or "",
    )
