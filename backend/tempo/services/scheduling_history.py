"""Append-only adjustment history per plan."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import asc, func
from sqlalchemy.orm import Session

from tempo.db.models.scheduling_history import SchedulingHistoryEntry

logger = logging.getLogger(__name__)


def record(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID],
    adjustment_date: date,
    days_extended: int,
    tasks_rescheduled: int,
    reason: Dict[str, Any],
    old_end_date: Optional[date] = None,
    new_end_date: Optional[date] = None,
) -> SchedulingHistoryEntry:
    """Stage a history row inside the caller's transaction."""
    entry = SchedulingHistoryEntry(
        user_id=user_id,
        plan_id=plan_id,
        adjustment_date=adjustment_date,
        old_end_date=old_end_date,
        new_end_date=new_end_date,
        days_extended=max(0, int(days_extended)),
        tasks_rescheduled=int(tasks_rescheduled),
        reason=reason,
    )
    db.add(entry)
    logger.debug(
        "History staged plan=%s tasks=%s days_extended=%s",
        plan_id or "free-mode",
        tasks_rescheduled,
        days_extended,
    )
    return entry


def list_entries(db: Session, plan_id: UUID) -> List[SchedulingHistoryEntry]:
    return (
        db.query(SchedulingHistoryEntry)
        .filter(SchedulingHistoryEntry.plan_id == plan_id)
        .order_by(asc(SchedulingHistoryEntry.created_at), asc(SchedulingHistoryEntry.adjustment_date))
        .all()
    )


def adjustment_count(db: Session, plan_id: Optional[UUID]) -> int:
    if plan_id is None:
        return 0
    return int(
        db.query(func.count(SchedulingHistoryEntry.id))
        .filter(SchedulingHistoryEntry.plan_id == plan_id)
        .scalar()
        or 0
    )


def summarize(db: Session, plan_id: UUID) -> str:
    count = adjustment_count(db, plan_id)
    return f"Plan was adjusted {count} time" + ("" if count == 1 else "s")
