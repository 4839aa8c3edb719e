"""Human-readable activity events for the external feed."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from tempo.core.context import get_request_id
from tempo.core.errors import ValidationError
from tempo.db.models.activity_log import ActivityLog

EVENT_SUMMARIES = {
    "task_completed": "Task marked complete",
    "task_uncompleted": "Task marked incomplete",
    "task_moved": "Task moved",
    "reschedule_proposed": "Reschedule suggested",
    "reschedule_approved": "Reschedule applied",
    "reschedule_rejected": "Reschedule declined",
    "reschedule_expired": "Reschedule expired",
    "plan_adjusted": "Plan adjusted",
    "plan_created": "Plan created",
    "plan_status_changed": "Plan status changed",
    "plan_deleted": "Plan deleted",
    "task_created": "Task created",
    "notification_proposals": "Reschedule notification",
    "notification_plan_adjusted": "Plan adjustment notification",
    "preferences_updated": "Preferences updated",
}


def record_event(
    db: Session,
    *,
    user_id: UUID,
    action_type: str,
    payload: Dict[str, Any],
    reason: str | None = None,
) -> ActivityLog:
    """Stage an activity row in the caller's transaction (no commit)."""
    body = dict(payload)
    body.setdefault("request_id", get_request_id())
    log = ActivityLog(
        user_id=user_id,
        action_type=action_type,
        action_payload=body,
        reason=reason or summarize(action_type, body),
    )
    db.add(log)
    return log


def summarize(action_type: str, payload: Dict[str, Any]) -> str:
    if action_type == "reschedule_proposed":
        name = payload.get("task_name") or "Task"
        return f"{name}: missed {payload.get('original_date')}, suggested {payload.get('suggested_date')}"
    if action_type == "plan_adjusted":
        moved = payload.get("tasks_rescheduled", 0)
        extended = payload.get("days_extended", 0)
        text = f"Plan adjusted: {moved} task(s) rescheduled"
        if extended:
            text += f", end date pushed {extended} day(s)"
        return text
    if action_type in ("task_completed", "task_uncompleted") and payload.get("task_name"):
        verb = "completed" if action_type == "task_completed" else "reopened"
        return f"{payload['task_name']} {verb} for {payload.get('scheduled_date')}"
    if action_type in EVENT_SUMMARIES:
        return EVENT_SUMMARIES[action_type]
    return action_type.replace("_", " ").capitalize()


@dataclass
class ActivityPage:
    items: List[ActivityLog]
    next_cursor: Optional[str]


def list_page(
    db: Session,
    user_id: UUID,
    *,
    limit: int = 50,
    cursor: Optional[str] = None,
    action_type: Optional[str] = None,
) -> ActivityPage:
    """Newest-first page of a user's feed with a keyset cursor."""
    query = db.query(ActivityLog).filter(ActivityLog.user_id == user_id)
    if action_type:
        query = query.filter(ActivityLog.action_type == action_type)
    if cursor:
        cursor_created, cursor_id = decode_cursor(cursor)
        query = query.filter(
            or_(
                ActivityLog.created_at < cursor_created,
                and_(ActivityLog.created_at == cursor_created, ActivityLog.id < cursor_id),
            )
        )
    rows = query.order_by(desc(ActivityLog.created_at), desc(ActivityLog.id)).limit(limit + 1).all()
    next_cursor = encode_cursor(rows[limit - 1]) if len(rows) > limit else None
    return ActivityPage(items=rows[:limit], next_cursor=next_cursor)


def encode_cursor(log: ActivityLog) -> str:
    raw = f"{log.created_at.isoformat()}|{log.id}"
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> Tuple[datetime, UUID]:
    try:
        raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
        created_raw, id_raw = raw.split("|", 1)
        return datetime.fromisoformat(created_raw), UUID(id_raw)
    except (ValueError, UnicodeError) as exc:
        raise ValidationError("Invalid cursor") from exc
