"""Notification hooks fired after scheduling mutations commit.

Each hook records what happened to the notification in the activity feed,
whether it was sent or skipped.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.db.models.scheduling_history import SchedulingHistoryEntry
from tempo.observability.metrics import log_metric
from tempo.observability.tracing import annotate, trace
from tempo.services.activity_feed import record_event
from tempo.services.notifications.base import NotificationResult
from tempo.services.notifications.factory import get_notification_service

logger = logging.getLogger(__name__)


def notify_proposals_created(
    db: Session,
    *,
    user_id: UUID,
    plan_id: Optional[UUID],
    proposal_count: int,
    request_id: str | None,
) -> NotificationResult:
    extra = {"plan_id": str(plan_id) if plan_id else None, "proposal_count": proposal_count}
    if proposal_count <= 0:
        return NotificationResult(status="skipped", reason="no new proposals")
    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
    else:
        result = _dispatch(
            "proposals_created",
            user_id=user_id,
            request_id=request_id,
            metadata=extra,
            send=lambda service: service.notify_proposals_created(
                user_id=user_id,
                plan_id=plan_id,
                proposal_count=proposal_count,
                request_id=request_id,
            ),
        )
    _record(db, user_id, "notification_proposals", result, request_id, extra)
    return result


def notify_plan_adjusted(
    db: Session,
    history: SchedulingHistoryEntry,
    request_id: str | None,
) -> NotificationResult:
    extra = {
        "plan_id": str(history.plan_id) if history.plan_id else None,
        "history_id": str(history.id),
        "tasks_rescheduled": history.tasks_rescheduled,
        "days_extended": history.days_extended,
    }
    if not settings.notifications_enabled:
        result = NotificationResult(status="skipped", reason="notifications disabled")
    else:
        result = _dispatch(
            "plan_adjusted",
            user_id=history.user_id,
            request_id=request_id,
            metadata=extra,
            send=lambda service: service.notify_plan_adjusted(
                user_id=history.user_id,
                plan_id=history.plan_id,
                tasks_rescheduled=int(history.tasks_rescheduled or 0),
                days_extended=int(history.days_extended or 0),
                history_id=history.id,
                request_id=request_id,
            ),
        )
    _record(db, history.user_id, "notification_plan_adjusted", result, request_id, extra)
    return result


def _dispatch(job_name, *, user_id, request_id, metadata, send) -> NotificationResult:
    service = get_notification_service()
    start = perf_counter()
    with trace(
        f"notifications.{job_name}",
        metadata={**metadata, "provider": settings.notifications_provider},
        user_id=str(user_id),
        request_id=request_id,
    ) as notification_trace:
        result = send(service)
        annotate(notification_trace, status=result.status, reason=result.reason)
    duration_ms = (perf_counter() - start) * 1000
    log_metric("notifications.sent", 1, metadata={"job": job_name, "provider": settings.notifications_provider})
    log_metric("notifications.duration_ms", duration_ms, metadata={"job": job_name})
    return result


def _record(
    db: Session,
    user_id: UUID,
    action_type: str,
    result: NotificationResult,
    request_id: str | None,
    extra: dict,
) -> None:
    if result.status == "skipped":
        log_metric("notifications.skipped", 1, metadata={"job": action_type})
        logger.debug("Notification %s skipped for user %s: %s", action_type, user_id, result.reason)
    record_event(
        db,
        user_id=user_id,
        action_type=action_type,
        payload={
            "provider": settings.notifications_provider,
            "result": result.__dict__,
            "extras": extra,
            "request_id": request_id or "",
        },
        reason="Notification dispatched" if result.status != "skipped" else "Notification skipped",
    )
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to record notification %s for user %s", action_type, user_id)
