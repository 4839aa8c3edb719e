"""Activity feed route."""
from __future__ import annotations

from time import perf_counter
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.activity import ActivityItem, ActivityListResponse
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric
from tempo.observability.tracing import trace
from tempo.services.activity_feed import list_page, summarize

router = APIRouter()


@router.get("/activity", response_model=ActivityListResponse, tags=["activity"])
def list_activity(
    request: Request,
    user_id: UUID = Query(..., description="User ID"),
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[str] = Query(None),
    action_type: Optional[str] = Query(None, description="Filter by action type"),
    db: Session = Depends(get_db),
) -> ActivityListResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"limit": limit, "cursor": bool(cursor), "action_type": action_type}
    start = perf_counter()
    with trace("activity.list", metadata=metadata, user_id=str(user_id), request_id=request_id):
        page = list_page(db, user_id, limit=limit, cursor=cursor, action_type=action_type)

    latency_ms = (perf_counter() - start) * 1000
    log_metric("activity.list.count", len(page.items), metadata={"user_id": str(user_id)})
    log_metric("activity.list.latency_ms", latency_ms, metadata={"user_id": str(user_id)})

    items = []
    for log in page.items:
        payload = log.action_payload if isinstance(log.action_payload, dict) else {}
        items.append(
            ActivityItem(
                id=log.id,
                action_type=log.action_type,
                summary=log.reason or summarize(log.action_type, payload),
                payload=payload,
                created_at=log.created_at,
            )
        )
    return ActivityListResponse(
        user_id=user_id,
        items=items,
        next_cursor=page.next_cursor,
        request_id=request_id or "",
    )
