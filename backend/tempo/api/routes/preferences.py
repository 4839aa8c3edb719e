"""Scheduling preference routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.preferences import SmartSchedulingRequest, SmartSchedulingResponse
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric
from tempo.observability.tracing import trace
from tempo.services.preferences_service import DatabaseSettingsProvider, set_smart_scheduling

router = APIRouter()


@router.get("/preferences/smart-scheduling", response_model=SmartSchedulingResponse, tags=["preferences"])
def read_smart_scheduling(
    http_request: Request,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> SmartSchedulingResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("preferences.smart_scheduling.get", user_id=str(user_id), request_id=request_id):
        enabled = DatabaseSettingsProvider(db).smart_scheduling_enabled(user_id)
    return SmartSchedulingResponse(user_id=user_id, enabled=enabled, request_id=request_id or "")


@router.put("/preferences/smart-scheduling", response_model=SmartSchedulingResponse, tags=["preferences"])
def update_smart_scheduling(
    payload: SmartSchedulingRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> SmartSchedulingResponse:
    """Toggle auto-approval of proposals that expire unanswered."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "preferences.smart_scheduling.put",
        metadata={"enabled": payload.enabled},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        prefs = set_smart_scheduling(db, payload.user_id, payload.enabled)
    log_metric("preferences.smart_scheduling", 1 if prefs.smart_scheduling_enabled else 0)
    return SmartSchedulingResponse(
        user_id=payload.user_id,
        enabled=bool(prefs.smart_scheduling_enabled),
        request_id=request_id or "",
    )
