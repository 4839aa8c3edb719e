"""Milestone completion derived from task completions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import TypeAdapter
from sqlalchemy import asc
from sqlalchemy.orm import Session

from tempo.core.errors import NotFoundError
from tempo.db.models.milestone import Milestone
from tempo.db.models.plan import Plan
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.services import derived_cache
from tempo.services.completion_tracker import completed_keys


@dataclass(frozen=True)
class MilestoneStatus:
    id: UUID
    name: str
    idx: int
    target_date: Optional[date]
    task_count: int
    occurrences: int
    completed_occurrences: int
    complete: bool


_STATUS_ADAPTER = TypeAdapter(MilestoneStatus)


def is_complete(db: Session, milestone_id: UUID) -> bool:
    milestone = db.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFoundError("Milestone not found", detail={"milestone_id": str(milestone_id)})
    return _status_for(db, milestone).complete


def plan_milestones(db: Session, plan_id: UUID) -> List[MilestoneStatus]:
    plan = db.get(Plan, plan_id)
    if plan is None:
        raise NotFoundError("Plan not found", detail={"plan_id": str(plan_id)})
    milestones = (
        db.query(Milestone)
        .filter(Milestone.plan_id == plan_id)
        .order_by(asc(Milestone.idx), asc(Milestone.name))
        .all()
    )
    return [_status_for(db, milestone, plan.user_id) for milestone in milestones]


def _status_for(db: Session, milestone: Milestone, user_id: Optional[UUID] = None) -> MilestoneStatus:
    if user_id is None:
        plan = db.get(Plan, milestone.plan_id)
        user_id = plan.user_id if plan else None
    return derived_cache.get_or_compute(
        db,
        user_id,
        milestone.plan_id,
        f"milestone:{milestone.id}",
        _STATUS_ADAPTER,
        lambda: _compute(db, milestone),
    )


def _compute(db: Session, milestone: Milestone) -> MilestoneStatus:
    task_ids = [row[0] for row in db.query(Task.id).filter(Task.milestone_id == milestone.id).all()]
    occurrences: Dict[UUID, set] = {task_id: set() for task_id in task_ids}
    if task_ids:
        rows = (
            db.query(ScheduleEntry.task_id, ScheduleEntry.date)
            .filter(ScheduleEntry.task_id.in_(task_ids))
            .all()
        )
        for task_id, day in rows:
            occurrences[task_id].add(day)

    done = completed_keys(db, task_ids)
    total = sum(len(days) for days in occurrences.values())
    completed = sum(1 for task_id, days in occurrences.items() for day in days if (task_id, day) in done)
    # A task with no placement can never be completed, so it keeps the milestone open.
    complete = bool(task_ids) and all(occurrences[task_id] for task_id in task_ids) and completed == total

    return MilestoneStatus(
        id=milestone.id,
        name=milestone.name,
        idx=milestone.idx or 0,
        target_date=milestone.target_date,
        task_count=len(task_ids),
        occurrences=total,
        completed_occurrences=completed,
        complete=complete,
    )
