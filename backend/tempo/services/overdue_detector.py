"""Overdue detection and reschedule proposals.

A sweep covers one user at a time, in two scopes: free-mode tasks and the
active plan. Each scope is a short transaction of its own, retried on
transient storage failures. Re-running a sweep is harmless because the
pending-proposal unique index rejects duplicates, which we count as
"already proposed".
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.clock import local_now, to_minutes
from tempo.core.context import bind_scope, get_request_id
from tempo.core.errors import FatalError, OperationCancelled, TransientError
from tempo.core.retry import RetryPolicy, run_with_retry
from tempo.db.models.plan import Plan
from tempo.db.models.reschedule_proposal import RESOLVED_BY_COMPLETION, RescheduleProposal
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.observability.metrics import log_metric
from tempo.services.activity_feed import record_event
from tempo.services.completion_tracker import completed_keys
from tempo.services.notifications.hooks import notify_proposals_created
from tempo.services.preferences_service import workday_window
from tempo.services.schedule_store import scope_filter
from tempo.services.slot_finder import Interval, find_slot

logger = logging.getLogger(__name__)

# Statuses that keep an occurrence out of future sweeps. Approved proposals do
# not block: the entry has moved, and anything left on that day is new work.
# Neither does a proposal closed by completing the occurrence, so undoing that
# completion makes the occurrence overdue again.
BLOCKING_STATUSES = ("pending", "rejected", "expired")


@dataclass
class ScopeSweepResult:
    plan_id: Optional[UUID]
    overdue_found: int = 0
    proposals_created: int = 0
    already_proposed: int = 0
    skipped: int = 0
    proposal_ids: List[UUID] = field(default_factory=list)


@dataclass
class SweepResult:
    user_id: UUID
    scopes: List[ScopeSweepResult] = field(default_factory=list)
    scopes_failed: int = 0

    @property
    def proposals_created(self) -> int:
        return sum(scope.proposals_created for scope in self.scopes)


def active_plan_id(db: Session, user_id: UUID) -> Optional[UUID]:
    row = db.query(Plan.id).filter(Plan.user_id == user_id, Plan.status == "active").first()
    return row[0] if row else None


def find_overdue_entries(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID],
    today: date,
) -> List[ScheduleEntry]:
    entries = (
        db.query(ScheduleEntry)
        .filter(
            ScheduleEntry.user_id == user_id,
            scope_filter(ScheduleEntry.plan_id, plan_id),
            ScheduleEntry.date < today,
        )
        .order_by(ScheduleEntry.date, ScheduleEntry.start_time)
        .all()
    )
    if not entries:
        return []

    task_ids = {entry.task_id for entry in entries}
    done = completed_keys(db, task_ids)
    blocked = {
        (row[0], row[1])
        for row in db.query(RescheduleProposal.task_id, RescheduleProposal.original_date)
        .filter(
            RescheduleProposal.task_id.in_(task_ids),
            RescheduleProposal.status.in_(BLOCKING_STATUSES),
            or_(
                RescheduleProposal.resolution_source.is_(None),
                RescheduleProposal.resolution_source != RESOLVED_BY_COMPLETION,
            ),
        )
        .all()
    }
    return [
        entry
        for entry in entries
        if (entry.task_id, entry.date) not in done and (entry.task_id, entry.date) not in blocked
    ]


def sweep_scope(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID],
    today: date,
    now: datetime,
    cancel_event: Optional[threading.Event] = None,
) -> ScopeSweepResult:
    """Propose a new slot for every overdue occurrence in one scope and commit."""
    result = ScopeSweepResult(plan_id=plan_id)
    try:
        overdue = find_overdue_entries(db, user_id, plan_id, today)
        result.overdue_found = len(overdue)
        if not overdue:
            return result

        window = workday_window(db, user_id)
        reserved = _pending_reservations(db, user_id, today)
        for entry in overdue:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled("sweep cancelled", detail={"user_id": str(user_id)})

            task = db.get(Task, entry.task_id)
            if task is None:
                result.skipped += 1
                logger.info("Task %s vanished during sweep, skipping", entry.task_id)
                continue

            slot = find_slot(
                db,
                user_id=user_id,
                duration_minutes=entry.duration_minutes,
                preferred_start=entry.start_time,
                today=today,
                now=now,
                window=window,
                reserved=reserved,
                priority=task.priority,
            )
            proposal = RescheduleProposal(
                user_id=user_id,
                task_id=entry.task_id,
                plan_id=plan_id,
                schedule_entry_id=entry.id,
                original_date=entry.date,
                original_start_time=entry.start_time,
                original_end_time=entry.end_time,
                suggested_date=slot.date,
                suggested_start_time=slot.start_time,
                suggested_end_time=slot.end_time,
                status="pending",
            )
            savepoint = db.begin_nested()
            db.add(proposal)
            try:
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                result.already_proposed += 1
                continue

            reserved.setdefault(slot.date, []).append((to_minutes(slot.start_time), to_minutes(slot.end_time)))
            record_event(
                db,
                user_id=user_id,
                action_type="reschedule_proposed",
                payload={
                    "proposal_id": str(proposal.id),
                    "task_id": str(task.id),
                    "task_name": task.name,
                    "plan_id": str(plan_id) if plan_id else None,
                    "original_date": entry.date.isoformat(),
                    "suggested_date": slot.date.isoformat(),
                },
            )
            result.proposals_created += 1
            result.proposal_ids.append(proposal.id)

        db.commit()
    except Exception:
        db.rollback()
        raise

    if result.proposals_created:
        logger.info(
            "Proposed %s reschedule(s) for user %s scope %s",
            result.proposals_created,
            user_id,
            plan_id or "free-mode",
        )
        notify_proposals_created(
            db,
            user_id=user_id,
            plan_id=plan_id,
            proposal_count=result.proposals_created,
            request_id=get_request_id(),
        )
    return result


def sweep_user(
    db: Session,
    user_id: UUID,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
    policy: Optional[RetryPolicy] = None,
) -> SweepResult:
    """Sweep free mode and the active plan; one failing scope does not stop the other."""
    now = now or local_now()
    today = today or now.date()
    outcome = SweepResult(user_id=user_id)
    scopes: List[Optional[UUID]] = [None]
    plan_id = active_plan_id(db, user_id)
    if plan_id is not None:
        scopes.append(plan_id)

    for scope_plan_id in scopes:
        label = f"sweep user={user_id} scope={scope_plan_id or 'free-mode'}"
        try:
            with bind_scope(user_id, scope_plan_id):
                scope_result = run_with_retry(
                    lambda: sweep_scope(db, user_id, scope_plan_id, today, now, cancel_event),
                    policy,
                    cancel_event=cancel_event,
                    label=label,
                )
        except TransientError:
            outcome.scopes_failed += 1
            log_metric("sweep.scope_abandoned", 1, metadata={"user_id": str(user_id)})
            logger.warning("%s abandoned for this cycle after retries", label)
            continue
        except (FatalError, OperationCancelled):
            raise
        except Exception:
            outcome.scopes_failed += 1
            logger.exception("%s failed", label)
            continue
        outcome.scopes.append(scope_result)

    log_metric(
        "sweep.proposals_created",
        outcome.proposals_created,
        metadata={"user_id": str(user_id)},
    )
    return outcome


def _pending_reservations(db: Session, user_id: UUID, today: date) -> Dict[date, List[Interval]]:
    rows = (
        db.query(
            RescheduleProposal.suggested_date,
            RescheduleProposal.suggested_start_time,
            RescheduleProposal.suggested_end_time,
        )
        .filter(
            RescheduleProposal.user_id == user_id,
            RescheduleProposal.status == "pending",
            RescheduleProposal.suggested_date >= today,
        )
        .all()
    )
    reserved: Dict[date, List[Interval]] = {}
    for day, start, end in rows:
        reserved.setdefault(day, []).append((to_minutes(start), to_minutes(end)))
    return reserved
