"""Completion Tracker: per-occurrence completion as presence of a row."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.errors import ValidationError
from tempo.db.models.completion_record import CompletionRecord
from tempo.db.models.reschedule_proposal import RESOLVED_BY_COMPLETION, RescheduleProposal
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.db.types import utcnow
from tempo.services import derived_cache
from tempo.services.activity_feed import record_event
from tempo.services.user_service import load_owned

logger = logging.getLogger(__name__)

CompletionKey = Tuple[UUID, date]


@dataclass
class ToggleResult:
    task_id: UUID
    scheduled_date: date
    completed: bool
    changed: bool
    completion_id: Optional[UUID] = None
    proposals_closed: int = 0


def toggle(
    db: Session,
    *,
    user_id: UUID,
    task_id: UUID,
    plan_id: Optional[UUID],
    scheduled_date: date,
    actual_duration_minutes: Optional[int] = None,
) -> ToggleResult:
    """Flip completion for one scheduled occurrence and commit.

    Delete if present, insert if absent. Losing an insert race to another
    writer leaves the occurrence completed, which is what the caller asked for.
    Completing an occurrence also closes its pending reschedule proposal, since
    there is nothing left to move.
    """
    task = load_owned(db, Task, task_id, user_id, label="Task", key="task_id")
    if task.plan_id != plan_id:
        raise ValidationError(
            "plan_id does not match the task's plan",
            detail={"task_id": str(task_id), "plan_id": str(plan_id) if plan_id else None},
        )
    if actual_duration_minutes is not None and actual_duration_minutes <= 0:
        raise ValidationError("actual_duration_minutes must be positive")
    if not _is_scheduled_on(db, task_id, scheduled_date):
        raise ValidationError(
            "task is not scheduled on that date",
            detail={"task_id": str(task_id), "scheduled_date": scheduled_date.isoformat()},
        )

    existing = (
        db.query(CompletionRecord)
        .filter(CompletionRecord.task_id == task_id, CompletionRecord.scheduled_date == scheduled_date)
        .one_or_none()
    )
    payload = {
        "task_id": str(task_id),
        "task_name": task.name,
        "plan_id": str(plan_id) if plan_id else None,
        "scheduled_date": scheduled_date.isoformat(),
    }

    if existing is not None:
        db.delete(existing)
        record_event(db, user_id=user_id, action_type="task_uncompleted", payload=payload)
        try:
            derived_cache.bump(db, user_id, plan_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return ToggleResult(task_id=task_id, scheduled_date=scheduled_date, completed=False, changed=True)

    record = CompletionRecord(
        user_id=user_id,
        task_id=task_id,
        plan_id=plan_id,
        scheduled_date=scheduled_date,
        actual_duration_minutes=actual_duration_minutes,
    )
    db.add(record)
    record_event(
        db,
        user_id=user_id,
        action_type="task_completed",
        payload={**payload, "actual_duration_minutes": actual_duration_minutes},
    )
    closed = _close_pending_proposals(db, user_id, task_id, scheduled_date)
    try:
        derived_cache.bump(db, user_id, plan_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Completion for task %s on %s already recorded by another writer", task_id, scheduled_date)
        return ToggleResult(task_id=task_id, scheduled_date=scheduled_date, completed=True, changed=False)
    except Exception:
        db.rollback()
        raise

    if closed:
        logger.info("Closed %s pending proposal(s) for completed task %s on %s", closed, task_id, scheduled_date)
    return ToggleResult(
        task_id=task_id,
        scheduled_date=scheduled_date,
        completed=True,
        changed=True,
        completion_id=record.id,
        proposals_closed=closed,
    )


def is_completed(db: Session, task_id: UUID, scheduled_date: date) -> bool:
    return (
        db.query(CompletionRecord.id)
        .filter(CompletionRecord.task_id == task_id, CompletionRecord.scheduled_date == scheduled_date)
        .first()
        is not None
    )


def completed_keys(db: Session, task_ids: Iterable[UUID]) -> Set[CompletionKey]:
    ids = list(task_ids)
    if not ids:
        return set()
    rows = (
        db.query(CompletionRecord.task_id, CompletionRecord.scheduled_date)
        .filter(CompletionRecord.task_id.in_(ids))
        .all()
    )
    return {(row[0], row[1]) for row in rows}


def _close_pending_proposals(db: Session, user_id: UUID, task_id: UUID, scheduled_date: date) -> int:
    pending = (
        db.query(RescheduleProposal)
        .filter(
            RescheduleProposal.task_id == task_id,
            RescheduleProposal.original_date == scheduled_date,
            RescheduleProposal.status == "pending",
        )
        .all()
    )
    resolved_at = utcnow()
    for proposal in pending:
        proposal.status = "expired"
        proposal.resolution_source = RESOLVED_BY_COMPLETION
        proposal.resolved_at = resolved_at
        db.add(proposal)
        record_event(
            db,
            user_id=user_id,
            action_type="reschedule_expired",
            payload={
                "proposal_id": str(proposal.id),
                "task_id": str(task_id),
                "plan_id": str(proposal.plan_id) if proposal.plan_id else None,
                "original_date": scheduled_date.isoformat(),
                "source": RESOLVED_BY_COMPLETION,
            },
        )
    return len(pending)


def _is_scheduled_on(db: Session, task_id: UUID, scheduled_date: date) -> bool:
    return (
        db.query(ScheduleEntry.id)
        .filter(ScheduleEntry.task_id == task_id, ScheduleEntry.date == scheduled_date)
        .first()
        is not None
    )
