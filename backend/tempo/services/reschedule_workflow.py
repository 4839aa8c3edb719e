"""Reschedule approval workflow.

Proposals start ``pending`` and end in exactly one of ``approved``,
``rejected`` or ``expired``. Approving moves the placements, extends the plan
end date when a target falls past it, and appends one history row, all in a
single transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import asc
from sqlalchemy.orm import Session

from tempo.core.clock import local_now, ranges_overlap, to_local, to_minutes
from tempo.core.config import settings
from tempo.core.context import get_request_id
from tempo.core.errors import (
    ConflictError,
    NotFoundError,
    SchedulingError,
    TransientError,
    ValidationError,
    classify_db_error,
)
from tempo.db.models.plan import Plan
from tempo.db.models.reschedule_proposal import PROPOSAL_STATUSES, RescheduleProposal
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.scheduling_history import SchedulingHistoryEntry
from tempo.db.models.task import Task
from tempo.db.types import utcnow
from tempo.observability.metrics import log_metric
from tempo.services import derived_cache, schedule_store, scheduling_history
from tempo.services.activity_feed import record_event
from tempo.services.completion_tracker import completed_keys
from tempo.services.notifications.hooks import notify_plan_adjusted
from tempo.services.preferences_service import DatabaseSettingsProvider, SettingsProvider, workday_window
from tempo.services.slot_finder import find_slot
from tempo.services.user_service import load_owned

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalOverride:
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


@dataclass
class ApprovalResult:
    proposals: List[RescheduleProposal] = field(default_factory=list)
    history: Optional[SchedulingHistoryEntry] = None
    days_extended: int = 0
    new_end_date: Optional[date] = None
    already_approved: bool = False

    @property
    def tasks_rescheduled(self) -> int:
        return 0 if self.already_approved else len(self.proposals)


@dataclass
class ExpiryResult:
    approved: int = 0
    rejected: int = 0
    expired: int = 0
    failed: int = 0


def list_proposals(
    db: Session,
    user_id: UUID,
    *,
    status: Optional[str] = "pending",
    plan_id: Optional[UUID] = None,
) -> List[RescheduleProposal]:
    query = db.query(RescheduleProposal).filter(RescheduleProposal.user_id == user_id)
    if status:
        if status not in PROPOSAL_STATUSES:
            raise ValidationError("unknown proposal status", detail={"status": status})
        query = query.filter(RescheduleProposal.status == status)
    if plan_id is not None:
        query = query.filter(RescheduleProposal.plan_id == plan_id)
    return query.order_by(asc(RescheduleProposal.original_date), asc(RescheduleProposal.created_at)).all()


def approve(
    db: Session,
    user_id: UUID,
    proposal_id: UUID,
    target_date: Optional[date] = None,
    target_start: Optional[time] = None,
    target_end: Optional[time] = None,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    source: str = "user",
) -> ApprovalResult:
    proposal = _load_owned(db, user_id, proposal_id)
    if proposal.status == "approved":
        return ApprovalResult(proposals=[proposal], already_approved=True)
    overrides = None
    if target_date is not None:
        overrides = {proposal.id: ProposalOverride(target_date, target_start, target_end)}
    return approve_batch(
        db,
        user_id,
        plan_id=proposal.plan_id,
        proposal_ids=[proposal.id],
        overrides=overrides,
        today=today,
        now=now,
        source=source,
    )


def approve_batch(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID] = None,
    proposal_ids: Optional[Sequence[UUID]] = None,
    overrides: Optional[Dict[UUID, ProposalOverride]] = None,
    *,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    source: str = "user",
) -> ApprovalResult:
    """Apply a set of proposals atomically.

    Without ``proposal_ids`` every pending proposal in the scope ``plan_id``
    (``None`` = free mode) is applied. Proposals already approved are skipped;
    rejected or expired ones, and proposals whose occurrence has since been
    completed, fail the whole batch. A suggestion that has gone stale (now in
    the past, or clashing with work placed since) is recomputed from ``today``;
    a user-chosen date in the past is refused.
    """
    now = now or local_now()
    today = today or now.date()
    overrides = overrides or {}
    try:
        proposals = _collect_batch(db, user_id, plan_id, proposal_ids)
        if not proposals:
            return ApprovalResult(already_approved=proposal_ids is not None)

        scope_plan_id = proposals[0].plan_id
        plan = db.get(Plan, scope_plan_id) if scope_plan_id else None
        if scope_plan_id is not None and plan is None:
            raise NotFoundError("Plan not found", detail={"plan_id": str(scope_plan_id)})

        moves = []
        resolved_at = utcnow()
        for proposal in proposals:
            override = overrides.get(proposal.id)
            if override is not None and override.date < today:
                raise ValidationError(
                    "target date is in the past",
                    detail={"proposal_id": str(proposal.id), "date": override.date.isoformat()},
                )
            target_date, target_start, target_end = _target_for(proposal, override)
            if override is None and _suggestion_is_stale(db, proposal, today, now):
                target_date, target_start, target_end = _recompute_target(db, proposal, today, now)
            entry = schedule_store.move(
                db,
                proposal.schedule_entry_id,
                target_date,
                target_start,
                target_end,
                allow_extension=True,
            )
            proposal.status = "approved"
            proposal.applied_date = entry.date
            proposal.resolution_source = source
            proposal.resolved_at = resolved_at
            db.add(proposal)
            moves.append(
                {
                    "proposal_id": str(proposal.id),
                    "task_id": str(proposal.task_id),
                    "from": proposal.original_date.isoformat(),
                    "to": entry.date.isoformat(),
                }
            )
            record_event(
                db,
                user_id=user_id,
                action_type="reschedule_approved",
                payload={**moves[-1], "plan_id": str(scope_plan_id) if scope_plan_id else None, "source": source},
            )

        old_end = plan.end_date if plan else None
        new_end = old_end
        latest = max(proposal.applied_date for proposal in proposals)
        if plan is not None and latest > plan.end_date:
            if plan.original_end_date is None:
                plan.original_end_date = plan.end_date
            plan.end_date = latest
            new_end = latest
            db.add(plan)
        days_extended = max(0, (new_end - old_end).days) if plan is not None else 0

        history = scheduling_history.record(
            db,
            user_id=user_id,
            plan_id=scope_plan_id,
            adjustment_date=today,
            days_extended=days_extended,
            tasks_rescheduled=len(proposals),
            reason={"type": "reschedule_approved", "source": source, "moves": moves},
            old_end_date=old_end,
            new_end_date=new_end,
        )
        record_event(
            db,
            user_id=user_id,
            action_type="plan_adjusted",
            payload={
                "plan_id": str(scope_plan_id) if scope_plan_id else None,
                "tasks_rescheduled": len(proposals),
                "days_extended": days_extended,
                "source": source,
            },
        )
        derived_cache.bump(db, user_id, scope_plan_id)
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except Exception as exc:
        db.rollback()
        raise classify_db_error(exc) from exc

    log_metric("reschedule.approved", len(proposals), metadata={"source": source})
    logger.info(
        "Applied %s reschedule(s) for user %s scope %s (days_extended=%s)",
        len(proposals),
        user_id,
        scope_plan_id or "free-mode",
        days_extended,
    )
    notify_plan_adjusted(db, history, get_request_id())
    return ApprovalResult(
        proposals=proposals,
        history=history,
        days_extended=days_extended,
        new_end_date=new_end,
    )


def reject(
    db: Session,
    user_id: UUID,
    proposal_id: UUID,
    *,
    source: str = "user",
) -> RescheduleProposal:
    """Close a proposal without touching the placement; that day stays missed."""
    proposal = _load_owned(db, user_id, proposal_id)
    if proposal.status == "rejected":
        return proposal
    if proposal.status != "pending":
        raise ConflictError(
            f"proposal is already {proposal.status}",
            detail={"proposal_id": str(proposal_id), "status": proposal.status},
        )
    return _close(db, proposal, status="rejected", source=source)


def expire_stale_proposals(
    db: Session,
    now: Optional[datetime] = None,
    settings_provider: Optional[SettingsProvider] = None,
    *,
    today: Optional[date] = None,
) -> ExpiryResult:
    """Resolve pending proposals older than the expiry window, one at a time.

    Smart scheduling is looked up per proposal at the moment it is resolved.
    On: the proposal is auto-approved. Off: it is rejected. An auto-approval
    that cannot be applied any more ends as ``expired``.
    """
    now = now or utcnow()
    provider = settings_provider or DatabaseSettingsProvider(db)
    cutoff = now - timedelta(hours=settings.proposal_expiry_hours)
    pending = (
        db.query(RescheduleProposal)
        .filter(RescheduleProposal.status == "pending")
        .order_by(asc(RescheduleProposal.created_at))
        .all()
    )
    stale = [(p.id, p.user_id) for p in pending if p.created_at is not None and p.created_at <= cutoff]
    outcome = ExpiryResult()

    for proposal_id, user_id in stale:
        try:
            if provider.smart_scheduling_enabled(user_id):
                try:
                    approve(db, user_id, proposal_id, today=today, now=to_local(now), source="expiry")
                    outcome.approved += 1
                except (NotFoundError, ConflictError, ValidationError) as exc:
                    logger.info("Auto-approval of proposal %s not applicable: %s", proposal_id, exc)
                    if _mark_expired(db, proposal_id):
                        outcome.expired += 1
            else:
                reject(db, user_id, proposal_id, source="expiry")
                outcome.rejected += 1
        except TransientError:
            outcome.failed += 1
            logger.warning("Proposal %s left pending after a transient failure", proposal_id)
        except Exception:
            outcome.failed += 1
            db.rollback()
            logger.exception("Failed to resolve stale proposal %s", proposal_id)

    if stale:
        log_metric("reschedule.expiry.processed", len(stale), metadata=dict(outcome.__dict__))
    return outcome


def _collect_batch(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID],
    proposal_ids: Optional[Sequence[UUID]],
) -> List[RescheduleProposal]:
    if proposal_ids is None:
        pending = (
            db.query(RescheduleProposal)
            .filter(
                RescheduleProposal.user_id == user_id,
                schedule_store.scope_filter(RescheduleProposal.plan_id, plan_id),
                RescheduleProposal.status == "pending",
            )
            .order_by(asc(RescheduleProposal.original_date))
            .all()
        )
        done = completed_keys(db, {proposal.task_id for proposal in pending})
        return [proposal for proposal in pending if (proposal.task_id, proposal.original_date) not in done]

    proposals = []
    for proposal_id in dict.fromkeys(proposal_ids):
        proposal = _load_owned(db, user_id, proposal_id)
        if proposal.status == "approved":
            continue
        if proposal.status != "pending":
            raise ConflictError(
                f"proposal is already {proposal.status}",
                detail={"proposal_id": str(proposal_id), "status": proposal.status},
            )
        proposals.append(proposal)
    if len({proposal.plan_id for proposal in proposals}) > 1:
        raise ValidationError("a batch must stay within one plan")
    done = completed_keys(db, {proposal.task_id for proposal in proposals})
    for proposal in proposals:
        if (proposal.task_id, proposal.original_date) in done:
            raise ConflictError(
                "the missed occurrence has been completed since it was proposed",
                detail={"proposal_id": str(proposal.id), "original_date": proposal.original_date.isoformat()},
            )
    return proposals


def _suggestion_is_stale(db: Session, proposal: RescheduleProposal, today: date, now: datetime) -> bool:
    if proposal.suggested_date < today:
        return True
    start = to_minutes(proposal.suggested_start_time)
    end = to_minutes(proposal.suggested_end_time)
    if proposal.suggested_date == today and now.date() == today and start < to_minutes(now.time()):
        return True
    others = (
        db.query(ScheduleEntry.start_time, ScheduleEntry.end_time)
        .filter(
            ScheduleEntry.user_id == proposal.user_id,
            ScheduleEntry.date == proposal.suggested_date,
            ScheduleEntry.id != proposal.schedule_entry_id,
        )
        .all()
    )
    return any(ranges_overlap(start, end, to_minutes(o_start), to_minutes(o_end)) for o_start, o_end in others)


def _recompute_target(db: Session, proposal: RescheduleProposal, today: date, now: datetime):
    entry = db.get(ScheduleEntry, proposal.schedule_entry_id)
    if entry is None:
        raise NotFoundError("Schedule entry not found", detail={"entry_id": str(proposal.schedule_entry_id)})
    task = db.get(Task, proposal.task_id)
    slot = find_slot(
        db,
        user_id=proposal.user_id,
        duration_minutes=entry.duration_minutes,
        preferred_start=proposal.original_start_time,
        today=today,
        now=now,
        window=workday_window(db, proposal.user_id),
        priority=task.priority if task is not None else None,
    )
    logger.info(
        "Proposal %s suggested %s is stale, applying %s %s instead",
        proposal.id,
        proposal.suggested_date,
        slot.date,
        slot.start_time,
    )
    proposal.suggested_date = slot.date
    proposal.suggested_start_time = slot.start_time
    proposal.suggested_end_time = slot.end_time
    return slot.date, slot.start_time, slot.end_time


def _target_for(proposal: RescheduleProposal, override: Optional[ProposalOverride]):
    if override is None:
        return proposal.suggested_date, proposal.suggested_start_time, proposal.suggested_end_time
    if override.start_time is None:
        return override.date, proposal.suggested_start_time, proposal.suggested_end_time
    # A new start without an end keeps the placement's duration.
    return override.date, override.start_time, override.end_time


def _load_owned(db: Session, user_id: UUID, proposal_id: UUID) -> RescheduleProposal:
    return load_owned(db, RescheduleProposal, proposal_id, user_id, label="Proposal", key="proposal_id")


def _close(db: Session, proposal: RescheduleProposal, *, status: str, source: str) -> RescheduleProposal:
    proposal.status = status
    proposal.resolution_source = source
    proposal.resolved_at = utcnow()
    db.add(proposal)
    record_event(
        db,
        user_id=proposal.user_id,
        action_type=f"reschedule_{status}",
        payload={
            "proposal_id": str(proposal.id),
            "task_id": str(proposal.task_id),
            "plan_id": str(proposal.plan_id) if proposal.plan_id else None,
            "original_date": proposal.original_date.isoformat(),
            "source": source,
        },
    )
    try:
        derived_cache.bump(db, proposal.user_id, proposal.plan_id)
        db.commit()
    except Exception as exc:
        db.rollback()
        raise classify_db_error(exc) from exc
    log_metric(f"reschedule.{status}", 1, metadata={"source": source})
    return proposal


def _mark_expired(db: Session, proposal_id: UUID) -> bool:
    proposal = db.get(RescheduleProposal, proposal_id)
    if proposal is None or proposal.status != "pending":
        return False
    _close(db, proposal, status="expired", source="expiry")
    return True
