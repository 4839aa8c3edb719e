"""Batch job runners for overdue sweeps, proposal expiry and health snapshots."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from tempo.core.clock import local_now
from tempo.core.context import bind_request_id
from tempo.core.errors import FatalError, OperationCancelled
from tempo.core.retry import RetryPolicy
from tempo.db.models.plan import Plan
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.observability.metrics import log_metric
from tempo.observability.tracing import annotate, trace
from tempo.services.health_scorer import capture_snapshot
from tempo.services.overdue_detector import sweep_user
from tempo.services.preferences_service import SettingsProvider
from tempo.services.reschedule_workflow import ExpiryResult, expire_stale_proposals

logger = logging.getLogger(__name__)


@dataclass
class JobRunResult:
    users_processed: int
    proposals_created: int = 0
    snapshots_written: int = 0
    scopes_failed: int = 0
    users_failed: int = 0
    cancelled: bool = False


def run_sweep_for_all_users(
    db: Session,
    *,
    user_ids: Optional[Iterable[UUID]] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None,
    policy: Optional[RetryPolicy] = None,
) -> JobRunResult:
    """Sweep every user with placements; one user's failure never stops the rest."""
    now = now or local_now()
    today = today or now.date()
    ids = _normalize_user_ids(user_ids, db)
    result = JobRunResult(users_processed=0)

    with bind_request_id(prefix="sweep"), trace("jobs.sweep", metadata={"users": len(ids)}) as span:
        for uid in ids:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                break
            try:
                outcome = sweep_user(db, uid, today=today, now=now, cancel_event=cancel_event, policy=policy)
            except OperationCancelled:
                result.cancelled = True
                logger.info("Sweep cancelled while processing user %s", uid)
                break
            except FatalError:
                result.users_failed += 1
                logger.error("Sweep refused for user %s (ownership/permission failure)", uid)
                continue
            except Exception:
                result.users_failed += 1
                db.rollback()
                logger.exception("Sweep failed for user %s", uid)
                continue
            result.users_processed += 1
            result.proposals_created += outcome.proposals_created
            result.scopes_failed += outcome.scopes_failed
        annotate(span, **result.__dict__)

    log_metric("jobs.sweep.proposals_created", result.proposals_created)
    log_metric("jobs.sweep.scopes_failed", result.scopes_failed)
    return result


def run_expiry(
    db: Session,
    *,
    now: Optional[datetime] = None,
    settings_provider: Optional[SettingsProvider] = None,
) -> ExpiryResult:
    with bind_request_id(prefix="expiry"), trace("jobs.expiry") as span:
        result = expire_stale_proposals(db, now, settings_provider)
        annotate(span, **result.__dict__)
    logger.info(
        "Expiry job complete: approved=%s rejected=%s expired=%s failed=%s",
        result.approved,
        result.rejected,
        result.expired,
        result.failed,
    )
    return result


def run_health_snapshots(db: Session, *, today: Optional[date] = None) -> JobRunResult:
    """Capture today's health row for every active plan."""
    today = today or local_now().date()
    plans = db.query(Plan.id, Plan.user_id).filter(Plan.status == "active").all()
    result = JobRunResult(users_processed=0)
    with bind_request_id(prefix="snapshot"), trace("jobs.health_snapshots", metadata={"plans": len(plans)}):
        for plan_id, user_id in plans:
            try:
                capture_snapshot(db, user_id, plan_id, today)
            except Exception:
                result.users_failed += 1
                db.rollback()
                logger.exception("Health snapshot failed for plan %s", plan_id)
                continue
            result.users_processed += 1
            result.snapshots_written += 1
    log_metric("jobs.health_snapshots.written", result.snapshots_written)
    return result


def _active_user_ids(db: Session) -> List[UUID]:
    rows = db.query(ScheduleEntry.user_id).distinct().all()
    return [row[0] for row in rows]


def _normalize_user_ids(user_ids: Optional[Iterable[UUID]], db: Session) -> List[UUID]:
    if user_ids is None:
        return _active_user_ids(db)
    return list(dict.fromkeys(user_ids))
