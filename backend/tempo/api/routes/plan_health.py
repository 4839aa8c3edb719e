"""Plan health routes."""
from __future__ import annotations

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.health import HealthHistoryPoint, HealthResponse, HealthSnapshotPayload
from tempo.core.clock import local_today
from tempo.core.config import settings
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric, timed_operation
from tempo.observability.tracing import annotate, trace
from tempo.services.health_insights import build_insights
from tempo.services.health_scorer import get_health, metric_history
from tempo.services.plan_intake import get_plan

router = APIRouter()


@router.get("/plans/{plan_id}/health", response_model=HealthResponse, tags=["health"])
def get_plan_health(
    plan_id: UUID,
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the plan"),
    as_of: Optional[date] = Query(default=None, description="Evaluate as of this day"),
    days: int = Query(default=settings.health_history_days, ge=1, le=90),
    db: Session = Depends(get_db),
) -> HealthResponse:
    """Current health snapshot, the rolling metric history and insights."""
    request_id = getattr(http_request.state, "request_id", None)
    today = as_of or local_today()
    with timed_operation("health.plan", {"plan_id": str(plan_id)}), trace(
        "health.plan",
        metadata={"plan_id": str(plan_id), "as_of": today.isoformat()},
        user_id=str(user_id),
        request_id=request_id,
    ) as span:
        get_plan(db, user_id, plan_id)
        snapshot = get_health(db, user_id, plan_id, today)
        history = metric_history(db, plan_id, days, today=today)
        insights = build_insights(snapshot, history, snapshot.adjustments)
        annotate(span, health_score=snapshot.health_score, color_state=snapshot.color_state)

    log_metric("health.plan.score", snapshot.health_score, metadata={"plan_id": str(plan_id)})
    return HealthResponse(
        user_id=user_id,
        snapshot=HealthSnapshotPayload.model_validate(snapshot),
        history=[HealthHistoryPoint.model_validate(row) for row in history],
        insights=insights,
        request_id=request_id or "",
    )


@router.get("/health/free-mode", response_model=HealthResponse, tags=["health"])
def get_free_mode_health(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID"),
    as_of: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
) -> HealthResponse:
    """Health over tasks that belong to no plan; there is no snapshot history here."""
    request_id = getattr(http_request.state, "request_id", None)
    today = as_of or local_today()
    with trace("health.free_mode", metadata={"as_of": today.isoformat()}, user_id=str(user_id), request_id=request_id):
        snapshot = get_health(db, user_id, None, today)
        insights = build_insights(snapshot, [], 0)
    return HealthResponse(
        user_id=user_id,
        snapshot=HealthSnapshotPayload.model_validate(snapshot),
        history=[],
        insights=insights,
        request_id=request_id or "",
    )
