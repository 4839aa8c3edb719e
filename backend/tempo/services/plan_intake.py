"""Plan intake and lifecycle.

Plan generation itself lives behind ``PlanGenerator``; this module only
persists what a generator hands back and manages plan status afterwards.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.clock import from_minutes, to_minutes
from tempo.core.config import settings
from tempo.core.errors import ConflictError, SchedulingError, ValidationError
from tempo.db.models.milestone import Milestone
from tempo.db.models.plan import PLAN_STATUSES, Plan
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.services import derived_cache, schedule_store
from tempo.services.activity_feed import record_event
from tempo.services.user_service import get_or_create_user, load_owned

logger = logging.getLogger(__name__)

MAX_GOAL_LENGTH = 500


@dataclass
class GeneratedPlacement:
    date: date
    start_time: time
    end_time: time


@dataclass
class GeneratedMilestone:
    name: str
    target_date: Optional[date] = None


@dataclass
class GeneratedTask:
    name: str
    placements: List[GeneratedPlacement] = field(default_factory=list)
    estimated_duration_minutes: Optional[int] = None
    priority: int = 3
    milestone_idx: Optional[int] = None


@dataclass
class GeneratedPlan:
    goal_text: str
    start_date: date
    end_date: date
    milestones: List[GeneratedMilestone] = field(default_factory=list)
    tasks: List[GeneratedTask] = field(default_factory=list)


class PlanGenerator:
    """Turns a goal and clarification answers into a dated plan."""

    def generate(self, goal_text: str, clarification_answers: Dict[str, str]) -> GeneratedPlan:
        raise NotImplementedError


def get_plan(db: Session, user_id: UUID, plan_id: UUID) -> Plan:
    return load_owned(db, Plan, plan_id, user_id, label="Plan", key="plan_id")


def active_plan(db: Session, user_id: UUID) -> Optional[Plan]:
    return db.query(Plan).filter(Plan.user_id == user_id, Plan.status == "active").first()


def ingest_generated_plan(
    db: Session,
    user_id: UUID,
    generated: GeneratedPlan,
    replace_active: bool = False,
) -> Plan:
    """Persist plan, milestones, tasks and placements in one transaction."""
    goal = (generated.goal_text or "").strip()
    if not goal:
        raise ValidationError("goal_text is required")
    if len(goal) > MAX_GOAL_LENGTH:
        raise ValidationError(f"goal_text must be {MAX_GOAL_LENGTH} characters or less")
    if generated.end_date < generated.start_date:
        raise ValidationError("end_date must not be before start_date")

    try:
        get_or_create_user(db, user_id)
        current = active_plan(db, user_id)
        if current is not None:
            if not replace_active:
                raise ConflictError("user already has an active plan", detail={"plan_id": str(current.id)})
            current.status = "paused"
            db.add(current)
            db.flush()

        plan = Plan(
            user_id=user_id,
            goal_text=goal,
            start_date=generated.start_date,
            end_date=generated.end_date,
            status="active",
        )
        db.add(plan)
        db.flush()

        milestones: List[Milestone] = []
        for idx, draft_milestone in enumerate(generated.milestones):
            milestone = Milestone(
                plan_id=plan.id,
                idx=idx,
                name=draft_milestone.name,
                target_date=draft_milestone.target_date,
            )
            db.add(milestone)
            milestones.append(milestone)
        db.flush()

        placements = 0
        for idx, draft in enumerate(generated.tasks):
            milestone_id = None
            if draft.milestone_idx is not None:
                if not 0 <= draft.milestone_idx < len(milestones):
                    raise ValidationError("task references an unknown milestone", detail={"task": draft.name})
                milestone_id = milestones[draft.milestone_idx].id
            task = Task(
                user_id=user_id,
                plan_id=plan.id,
                milestone_id=milestone_id,
                idx=idx,
                name=draft.name,
                estimated_duration_minutes=draft.estimated_duration_minutes,
                priority=_priority(draft.priority),
            )
            db.add(task)
            db.flush()
            for placement in draft.placements:
                schedule_store.place(db, task, placement.date, placement.start_time, placement.end_time)
                placements += 1

        record_event(
            db,
            user_id=user_id,
            action_type="plan_created",
            payload={
                "plan_id": str(plan.id),
                "tasks": len(generated.tasks),
                "milestones": len(milestones),
                "placements": placements,
                "replaced_plan_id": str(current.id) if current is not None else None,
            },
        )
        derived_cache.bump(db, user_id, plan.id)
        if current is not None:
            derived_cache.bump(db, user_id, current.id)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("user already has an active plan") from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(plan)
    logger.info("Ingested plan %s for user %s (%s placements)", plan.id, user_id, placements)
    return plan


def set_plan_status(db: Session, user_id: UUID, plan_id: UUID, status: str) -> Plan:
    if status not in PLAN_STATUSES:
        raise ValidationError("unknown plan status", detail={"status": status})
    plan = get_plan(db, user_id, plan_id)
    if plan.status == status:
        return plan
    if status == "active":
        current = active_plan(db, user_id)
        if current is not None and current.id != plan.id:
            raise ConflictError("user already has an active plan", detail={"plan_id": str(current.id)})

    previous = plan.status
    plan.status = status
    db.add(plan)
    record_event(
        db,
        user_id=user_id,
        action_type="plan_status_changed",
        payload={"plan_id": str(plan.id), "from": previous, "to": status},
    )
    try:
        derived_cache.bump(db, user_id, plan.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("user already has an active plan") from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(plan)
    return plan


def delete_plan(db: Session, user_id: UUID, plan_id: UUID) -> None:
    """Remove a plan; its tasks, placements, completions and history go with it."""
    plan = get_plan(db, user_id, plan_id)
    db.delete(plan)
    record_event(db, user_id=user_id, action_type="plan_deleted", payload={"plan_id": str(plan_id)})
    try:
        derived_cache.bump(db, user_id, plan_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.expunge_all()


def create_free_task(
    db: Session,
    user_id: UUID,
    name: str,
    duration: Optional[int],
    priority: Optional[int],
    slot_date: date,
    start: time,
) -> ScheduleEntry:
    """A task outside any plan, placed once."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    minutes = int(duration or settings.default_task_duration_minutes)
    end_minutes = to_minutes(start) + minutes
    if minutes <= 0 or end_minutes >= 24 * 60:
        raise ValidationError("task must fit within the day", detail={"duration": minutes})

    try:
        get_or_create_user(db, user_id)
        task = Task(
            user_id=user_id,
            plan_id=None,
            name=name,
            estimated_duration_minutes=minutes,
            priority=_priority(priority),
        )
        db.add(task)
        db.flush()
        entry = schedule_store.place(db, task, slot_date, start, from_minutes(end_minutes))
        record_event(
            db,
            user_id=user_id,
            action_type="task_created",
            payload={"task_id": str(task.id), "task_name": name, "date": slot_date.isoformat()},
        )
        derived_cache.bump(db, user_id, None)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


def _priority(value: Optional[int]) -> int:
    if value is None:
        return 3
    if not 1 <= int(value) <= 5:
        raise ValidationError("priority must be between 1 and 5", detail={"priority": value})
    return int(value)
