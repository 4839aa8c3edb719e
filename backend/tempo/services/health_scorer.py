"""Plan health: progress, consistency and efficiency blended into one score.

Everything here is a read over stored placements and completions. The
result for a scope and day is cached under the scope's current version, which
every mutation bumps in its own transaction, so reads always see committed writes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter
from sqlalchemy import asc
from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.core.errors import NotFoundError
from tempo.db.models.completion_record import CompletionRecord
from tempo.db.models.health_snapshot import HealthSnapshotRecord
from tempo.db.models.plan import Plan
from tempo.db.models.task import Task
from tempo.db.types import utcnow
from tempo.services import derived_cache, schedule_store, scheduling_history

logger = logging.getLogger(__name__)

Occurrence = Tuple[UUID, date]

COLOR_NO_DATA = "no_data"
COLOR_GOOD = "good"
COLOR_DEGRADING = "degrading"
COLOR_CRITICAL = "critical"


@dataclass(frozen=True)
class HealthSnapshot:
    user_id: UUID
    plan_id: Optional[UUID]
    as_of: date
    has_scheduled_tasks: bool
    progress: float
    consistency: float
    efficiency: Optional[float]
    health_score: float
    color_state: str
    streak_days: int
    adjustments: int
    total_occurrences: int = 0
    due_occurrences: int = 0
    completed_occurrences: int = 0
    overdue_occurrences: int = 0
    breakdown: Dict[str, float] = field(default_factory=dict)
    computed_at: datetime = field(default_factory=utcnow)


_SNAPSHOT_ADAPTER = TypeAdapter(HealthSnapshot)


def color_for(score: float, has_scheduled_tasks: bool) -> str:
    if not has_scheduled_tasks:
        return COLOR_NO_DATA
    if score >= settings.health_good_threshold:
        return COLOR_GOOD
    if score >= settings.health_degrading_threshold:
        return COLOR_DEGRADING
    return COLOR_CRITICAL


def compute_health(db: Session, user_id: UUID, plan_id: Optional[UUID], today: date) -> HealthSnapshot:
    entries = schedule_store.list_by_scope(db, user_id, plan_id)
    adjustments = scheduling_history.adjustment_count(db, plan_id)
    if not entries:
        return HealthSnapshot(
            user_id=user_id,
            plan_id=plan_id,
            as_of=today,
            has_scheduled_tasks=False,
            progress=0.0,
            consistency=0.0,
            efficiency=None,
            health_score=100.0,
            color_state=COLOR_NO_DATA,
            streak_days=0,
            adjustments=adjustments,
        )

    minutes_by_occurrence: Dict[Occurrence, int] = {}
    for entry in entries:
        key = (entry.task_id, entry.date)
        minutes_by_occurrence[key] = minutes_by_occurrence.get(key, 0) + int(entry.duration_minutes)
    occurrences: Set[Occurrence] = set(minutes_by_occurrence)

    completions = _completions_for(db, {task_id for task_id, _ in occurrences})
    done = {key for key in completions if key in occurrences}

    due = {key for key in occurrences if key[1] <= today}
    past = {key for key in occurrences if key[1] < today}
    completed_due = due & done
    overdue = past - done

    progress = 100.0 * len(completed_due) / len(due) if due else 100.0
    consistency = _consistency(occurrences, done, today)
    streak = _streak(occurrences, done, today)
    estimates = _estimates(db, occurrences, minutes_by_occurrence)
    efficiency = _efficiency(completions, done, estimates)

    if settings.health_blend == "weighted":
        score, breakdown = _weighted_score(progress, consistency, efficiency)
    else:
        score, breakdown = _degrading_score(
            completions=completions,
            done=done,
            past=past,
            overdue=overdue,
            today=today,
            streak=streak,
        )

    return HealthSnapshot(
        user_id=user_id,
        plan_id=plan_id,
        as_of=today,
        has_scheduled_tasks=True,
        progress=round(progress, 1),
        consistency=round(consistency, 1),
        efficiency=None if efficiency is None else round(efficiency, 1),
        health_score=round(score, 1),
        color_state=color_for(score, True),
        streak_days=streak,
        adjustments=adjustments,
        total_occurrences=len(occurrences),
        due_occurrences=len(due),
        completed_occurrences=len(completed_due),
        overdue_occurrences=len(overdue),
        breakdown=breakdown,
    )


def get_health(db: Session, user_id: UUID, plan_id: Optional[UUID], today: date) -> HealthSnapshot:
    return derived_cache.get_or_compute(
        db,
        user_id,
        plan_id,
        f"health:{today.isoformat()}",
        _SNAPSHOT_ADAPTER,
        lambda: compute_health(db, user_id, plan_id, today),
    )


def capture_snapshot(db: Session, user_id: UUID, plan_id: UUID, today: date) -> HealthSnapshotRecord:
    """Upsert today's row in the rolling per-plan metric history."""
    snapshot = compute_health(db, user_id, plan_id, today)
    record = (
        db.query(HealthSnapshotRecord)
        .filter(HealthSnapshotRecord.plan_id == plan_id, HealthSnapshotRecord.snapshot_date == today)
        .one_or_none()
    )
    if record is None:
        record = HealthSnapshotRecord(user_id=user_id, plan_id=plan_id, snapshot_date=today)
    record.health_score = snapshot.health_score
    record.color_state = snapshot.color_state
    record.has_scheduled_tasks = snapshot.has_scheduled_tasks
    record.progress = snapshot.progress
    record.consistency = snapshot.consistency
    record.efficiency = snapshot.efficiency
    record.streak_days = snapshot.streak_days
    db.add(record)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record


def metric_history(
    db: Session,
    plan_id: UUID,
    days: Optional[int] = None,
    *,
    today: Optional[date] = None,
) -> List[HealthSnapshotRecord]:
    if db.get(Plan, plan_id) is None:
        raise NotFoundError("Plan not found", detail={"plan_id": str(plan_id)})
    query = db.query(HealthSnapshotRecord).filter(HealthSnapshotRecord.plan_id == plan_id)
    if today is not None:
        window = days if days is not None else settings.health_history_days
        query = query.filter(HealthSnapshotRecord.snapshot_date >= today - timedelta(days=window))
    return query.order_by(asc(HealthSnapshotRecord.snapshot_date)).all()


def _completions_for(db: Session, task_ids: Set[UUID]) -> Dict[Occurrence, CompletionRecord]:
    if not task_ids:
        return {}
    rows = db.query(CompletionRecord).filter(CompletionRecord.task_id.in_(list(task_ids))).all()
    return {(row.task_id, row.scheduled_date): row for row in rows}


def _completed_on(record: CompletionRecord) -> date:
    """Calendar day of completion in the scheduler timezone."""
    return record.completed_at.astimezone(ZoneInfo(settings.scheduler_timezone)).date()


def _consistency(occurrences: Set[Occurrence], done: Set[Occurrence], today: date) -> float:
    start = today - timedelta(days=settings.consistency_window_days - 1)
    completed_days = {day for _, day in done}
    days = set()
    for _, day in occurrences:
        if start <= day < today or (day == today and day in completed_days):
            days.add(day)
    if not days:
        return 100.0
    return 100.0 * len(days & completed_days) / len(days)


def _streak(occurrences: Set[Occurrence], done: Set[Occurrence], today: date) -> int:
    """Consecutive scheduled days, newest first, that have a completion.

    Today extends the streak once something is completed but an open today
    does not break it.
    """
    completed_days = {day for _, day in done}
    streak = 0
    for day in sorted({day for _, day in occurrences if day <= today}, reverse=True):
        if day in completed_days:
            streak += 1
        elif day == today:
            continue
        else:
            break
    return streak


def _estimates(
    db: Session,
    occurrences: Set[Occurrence],
    minutes_by_occurrence: Dict[Occurrence, int],
) -> Dict[Occurrence, int]:
    task_ids = list({task_id for task_id, _ in occurrences})
    declared = dict(
        db.query(Task.id, Task.estimated_duration_minutes).filter(Task.id.in_(task_ids)).all()
    )
    # A placement's own length is the estimate unless the task declares one.
    return {key: int(declared.get(key[0]) or minutes) for key, minutes in minutes_by_occurrence.items()}


def _efficiency(
    completions: Dict[Occurrence, CompletionRecord],
    done: Set[Occurrence],
    estimates: Dict[Occurrence, int],
) -> Optional[float]:
    if len(done) < max(1, settings.efficiency_min_samples):
        return None
    total = 0.0
    for key in done:
        record = completions[key]
        timely = 1.0 if _completed_on(record) <= key[1] else 0.0
        accuracy = 1.0
        actual = record.actual_duration_minutes
        estimate = estimates.get(key)
        if actual and estimate:
            accuracy = min(estimate, actual) / max(estimate, actual)
        total += timely * accuracy
    return 100.0 * total / len(done)


def _degrading_score(
    *,
    completions: Dict[Occurrence, CompletionRecord],
    done: Set[Occurrence],
    past: Set[Occurrence],
    overdue: Set[Occurrence],
    today: date,
    streak: int,
) -> Tuple[float, Dict[str, float]]:
    late = early = on_time = 0
    for key in done:
        completed_on = _completed_on(completions[key])
        if completed_on > key[1]:
            late += 1
        elif completed_on < key[1]:
            early += 1
        else:
            on_time += 1

    # Only fully elapsed days are penalized; today is still in play.
    past_days = {day for _, day in past}
    past_days_with_completion = {day for _, day in done if day < today}
    breakdown = {
        "late_completion": -settings.health_late_completion_penalty * late,
        "overdue": -settings.health_overdue_penalty_per_day * sum((today - day).days for _, day in overdue),
        "consistency_gap": -settings.health_consistency_gap_penalty * len(past_days - past_days_with_completion),
        "progress_lag": 0.0,
        "on_time_bonus": settings.health_ontime_bonus * on_time,
        "early_bonus": settings.health_early_bonus * early,
        "streak_bonus": settings.health_streak_bonus * streak,
    }
    if past:
        past_rate = 100.0 * len(past & done) / len(past)
        if past_rate < settings.health_progress_lag_threshold:
            breakdown["progress_lag"] = -float(settings.health_progress_lag_penalty)

    score = 100.0 + sum(breakdown.values())
    return _clamp(score), {name: float(value) for name, value in breakdown.items()}


def _weighted_score(
    progress: float,
    consistency: float,
    efficiency: Optional[float],
) -> Tuple[float, Dict[str, float]]:
    parts = [
        ("progress", progress, settings.health_weight_progress),
        ("consistency", consistency, settings.health_weight_consistency),
    ]
    if efficiency is not None:
        parts.append(("efficiency", efficiency, settings.health_weight_efficiency))
    total_weight = sum(weight for _, _, weight in parts) or 1.0
    breakdown = {name: value * weight / total_weight for name, value, weight in parts}
    return _clamp(sum(breakdown.values())), breakdown


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))
