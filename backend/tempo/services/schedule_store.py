"""Schedule Store: dated placements of tasks.

A task may hold several placements (split work). Placements of one task on the
same day must not overlap in time, and placements stay inside the plan's date
range unless the caller is an approved reschedule that may extend the plan.
``place`` and ``move`` flush but never commit so callers can group them into
one transaction; ``place_task`` and ``move_entry`` are the committing entry
points used by the API.
"""
from __future__ import annotations

import logging
from datetime import date, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.orm import Session

from tempo.core.clock import minutes_between, ranges_overlap, to_minutes
from tempo.core.errors import ConflictError, NotFoundError, ValidationError
from tempo.db.models.plan import Plan
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.db.types import utcnow
from tempo.services import derived_cache
from tempo.services.activity_feed import record_event
from tempo.services.user_service import load_owned

logger = logging.getLogger(__name__)

MAX_DURATION_MINUTES = 24 * 60


def scope_filter(column, plan_id: Optional[UUID]):
    """``column = plan_id`` that also matches free mode (``plan_id IS NULL``)."""
    return column.is_(None) if plan_id is None else column == plan_id


def validate_slot(slot_date: object, start: object, end: object) -> int:
    """Check a placement's shape and return its duration in minutes."""
    if not isinstance(slot_date, date):
        raise ValidationError("date must be a calendar date", detail={"date": str(slot_date)})
    if not isinstance(start, time) or not isinstance(end, time):
        raise ValidationError("start_time and end_time must be times of day")
    duration = minutes_between(start, end)
    if duration <= 0:
        raise ValidationError(
            "end_time must be after start_time",
            detail={"start_time": start.isoformat(), "end_time": end.isoformat()},
        )
    if duration > MAX_DURATION_MINUTES:
        raise ValidationError("placements cannot exceed one day")
    return duration


def place(
    db: Session,
    task: Task,
    slot_date: date,
    start: time,
    end: time,
    *,
    allow_extension: bool = False,
) -> ScheduleEntry:
    duration = validate_slot(slot_date, start, end)
    plan = _plan_for(db, task.plan_id)
    _check_plan_window(plan, slot_date, allow_extension)
    _check_same_task_overlap(db, task.id, slot_date, start, end)

    entry = ScheduleEntry(
        user_id=task.user_id,
        task_id=task.id,
        plan_id=task.plan_id,
        date=slot_date,
        start_time=start,
        end_time=end,
        duration_minutes=duration,
    )
    db.add(entry)
    db.flush()
    logger.debug("Placed task %s on %s %s-%s", task.id, slot_date, start, end)
    return entry


def move(
    db: Session,
    entry_id: UUID,
    new_date: date,
    new_start: Optional[time] = None,
    new_end: Optional[time] = None,
    *,
    allow_extension: bool = False,
) -> ScheduleEntry:
    """Move a placement; omitted times keep the entry's current time of day."""
    entry = db.get(ScheduleEntry, entry_id)
    if entry is None:
        raise NotFoundError("Schedule entry not found", detail={"entry_id": str(entry_id)})

    start = entry.start_time if new_start is None else new_start
    if new_end is not None:
        end = new_end
    elif new_start is not None:
        # Keep the duration when only a new start was given.
        end_minutes = to_minutes(start) + int(entry.duration_minutes)
        if end_minutes >= MAX_DURATION_MINUTES:
            raise ValidationError("moved placement would cross midnight")
        end = time(end_minutes // 60, end_minutes % 60)
    else:
        end = entry.end_time

    duration = validate_slot(new_date, start, end)
    plan = _plan_for(db, entry.plan_id)
    _check_plan_window(plan, new_date, allow_extension)
    _check_same_task_overlap(db, entry.task_id, new_date, start, end, exclude_entry_id=entry.id)

    if entry.date != new_date:
        entry.rescheduled_from = entry.date
        entry.reschedule_count = (entry.reschedule_count or 0) + 1
        entry.last_rescheduled_at = utcnow()
    entry.date = new_date
    entry.start_time = start
    entry.end_time = end
    entry.duration_minutes = duration
    db.add(entry)
    db.flush()
    return entry


def list_by_plan(
    db: Session,
    plan_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[ScheduleEntry]:
    query = db.query(ScheduleEntry).filter(ScheduleEntry.plan_id == plan_id)
    if date_from:
        query = query.filter(ScheduleEntry.date >= date_from)
    if date_to:
        query = query.filter(ScheduleEntry.date <= date_to)
    return query.order_by(asc(ScheduleEntry.date), asc(ScheduleEntry.start_time)).all()


def list_by_task(db: Session, task_id: UUID) -> List[ScheduleEntry]:
    return (
        db.query(ScheduleEntry)
        .filter(ScheduleEntry.task_id == task_id)
        .order_by(asc(ScheduleEntry.date), asc(ScheduleEntry.start_time))
        .all()
    )


def list_by_scope(db: Session, user_id: UUID, plan_id: Optional[UUID]) -> List[ScheduleEntry]:
    return (
        db.query(ScheduleEntry)
        .filter(ScheduleEntry.user_id == user_id, scope_filter(ScheduleEntry.plan_id, plan_id))
        .order_by(asc(ScheduleEntry.date), asc(ScheduleEntry.start_time))
        .all()
    )


def _plan_for(db: Session, plan_id: Optional[UUID]) -> Optional[Plan]:
    if plan_id is None:
        return None
    plan = db.get(Plan, plan_id)
    if plan is None:
        raise NotFoundError("Plan not found", detail={"plan_id": str(plan_id)})
    return plan


def _check_plan_window(plan: Optional[Plan], slot_date: date, allow_extension: bool) -> None:
    if plan is None:
        return
    if slot_date < plan.start_date:
        raise ValidationError(
            "placement is before the plan start date",
            detail={"date": slot_date.isoformat(), "start_date": plan.start_date.isoformat()},
        )
    if slot_date > plan.end_date and not allow_extension:
        raise ValidationError(
            "placement is after the plan end date",
            detail={"date": slot_date.isoformat(), "end_date": plan.end_date.isoformat()},
        )


def _check_same_task_overlap(
    db: Session,
    task_id: UUID,
    slot_date: date,
    start: time,
    end: time,
    *,
    exclude_entry_id: Optional[UUID] = None,
) -> None:
    query = db.query(ScheduleEntry).filter(ScheduleEntry.task_id == task_id, ScheduleEntry.date == slot_date)
    if exclude_entry_id is not None:
        query = query.filter(ScheduleEntry.id != exclude_entry_id)
    for other in query.all():
        if ranges_overlap(to_minutes(start), to_minutes(end), to_minutes(other.start_time), to_minutes(other.end_time)):
            raise ConflictError(
                "task already has an overlapping placement that day",
                detail={"task_id": str(task_id), "date": slot_date.isoformat(), "entry_id": str(other.id)},
            )


def place_task(
    db: Session,
    user_id: UUID,
    task_id: UUID,
    slot_date: date,
    start: time,
    end: time,
) -> ScheduleEntry:
    """User-facing placement: ownership check, then one commit."""
    task = load_owned(db, Task, task_id, user_id, label="Task", key="task_id")
    try:
        entry = place(db, task, slot_date, start, end)
        derived_cache.bump(db, user_id, entry.plan_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def move_entry(
    db: Session,
    user_id: UUID,
    entry_id: UUID,
    new_date: date,
    new_start: Optional[time] = None,
    new_end: Optional[time] = None,
) -> ScheduleEntry:
    """User-facing move; stays inside the plan's dates."""
    entry = load_owned(db, ScheduleEntry, entry_id, user_id, label="Schedule entry", key="entry_id")
    previous = entry.date
    try:
        entry = move(db, entry_id, new_date, new_start, new_end)
        record_event(
            db,
            user_id=user_id,
            action_type="task_moved",
            payload={
                "entry_id": str(entry.id),
                "task_id": str(entry.task_id),
                "from": previous.isoformat(),
                "to": entry.date.isoformat(),
            },
        )
        derived_cache.bump(db, user_id, entry.plan_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry
