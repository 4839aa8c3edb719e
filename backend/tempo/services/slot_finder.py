"""Free slot search used when proposing a new date for missed work.

The day is always the earliest one with room. Within that day the original
start time wins when it is free; otherwise every fitting start on the
15-minute grid is scored and the best one is taken, earliest on ties. The
score keeps work away from tasks of the same or higher priority (how far
depends on ``priority_spacing``) and away from crowded stretches of the day.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from tempo.core.clock import from_minutes, ranges_overlap, to_minutes
from tempo.core.config import settings
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task
from tempo.services.preferences_service import WorkdayWindow

Interval = Tuple[int, int]
# (start minute, end minute, priority) of a stored placement.
Neighbour = Tuple[int, int, Optional[int]]

# spacing -> (window in minutes, weight for same-or-higher priority neighbours)
SPACING_RULES = {
    "strict": (120, 1.0),
    "moderate": (90, 0.7),
    "loose": (60, 0.5),
}
LOWER_PRIORITY_WEIGHT = 0.3
DENSITY_CAP = 20.0


@dataclass(frozen=True)
class Slot:
    date: date
    start_time: time
    end_time: time


def find_slot(
    db: Session,
    *,
    user_id: UUID,
    duration_minutes: int,
    preferred_start: Optional[time],
    today: date,
    now: datetime,
    window: WorkdayWindow,
    reserved: Optional[Dict[date, List[Interval]]] = None,
    priority: Optional[int] = None,
) -> Slot:
    """Slot on the earliest day on or after ``today`` that fits the workday.

    ``reserved`` holds intervals already promised to other proposals in the
    same sweep so two missed tasks are not suggested into the same gap.
    """
    duration = max(1, int(duration_minutes or settings.default_task_duration_minutes))
    horizon = max(1, settings.slot_search_days)
    days = [today + timedelta(days=offset) for offset in range(horizon)]
    placed = _placements_by_day(db, user_id, days)
    busy: Dict[date, List[Interval]] = {
        day: [(start, end) for start, end, _ in rows] for day, rows in placed.items()
    }
    for day, intervals in (reserved or {}).items():
        busy.setdefault(day, []).extend(intervals)

    now_minutes = to_minutes(now.time()) if now.date() == today else None
    for day in days:
        earliest = window.start_minute
        if day == today and now_minutes is not None:
            earliest = max(earliest, _round_up(now_minutes, settings.slot_granularity_minutes))
        start = pick_start(
            busy.get(day, []),
            duration=duration,
            earliest=earliest,
            window=window,
            preferred=to_minutes(preferred_start) if preferred_start else None,
            neighbours=placed.get(day, []),
            priority=priority,
        )
        if start is not None:
            return Slot(date=day, start_time=from_minutes(start), end_time=from_minutes(start + duration))

    # Nothing free inside the horizon: park it just past the horizon at the old time.
    fallback_day = today + timedelta(days=horizon)
    fallback_start = to_minutes(preferred_start) if preferred_start else window.start_minute
    fallback_start = min(fallback_start, 24 * 60 - duration - 1)
    return Slot(
        date=fallback_day,
        start_time=from_minutes(fallback_start),
        end_time=from_minutes(fallback_start + duration),
    )


def pick_start(
    busy: Sequence[Interval],
    *,
    duration: int,
    earliest: int,
    window: WorkdayWindow,
    preferred: Optional[int] = None,
    neighbours: Sequence[Neighbour] = (),
    priority: Optional[int] = None,
) -> Optional[int]:
    """Start minute in the window that avoids lunch and ``busy``, or None."""
    blocked = list(busy) + [(window.lunch_start_minute, window.lunch_end_minute)]

    def fits(start: int) -> bool:
        end = start + duration
        if start < earliest or end > window.end_minute:
            return False
        return not any(ranges_overlap(start, end, b_start, b_end) for b_start, b_end in blocked)

    if preferred is not None and fits(preferred):
        return preferred

    step = max(1, settings.slot_granularity_minutes)
    best: Optional[int] = None
    best_score = 0.0
    candidate = _round_up(max(earliest, window.start_minute), step)
    while candidate + duration <= window.end_minute:
        if fits(candidate):
            score = slot_score(candidate, candidate + duration, priority, neighbours)
            if best is None or score > best_score:
                best, best_score = candidate, score
        candidate += step
    return best


def slot_score(start: int, end: int, priority: Optional[int], neighbours: Sequence[Neighbour]) -> float:
    return (
        100.0
        - settings.slot_priority_penalty_weight * priority_penalty(start, end, priority, neighbours)
        - settings.slot_density_penalty_weight * density_penalty(start, end, neighbours)
    )


def priority_penalty(
    start: int,
    end: int,
    priority: Optional[int],
    neighbours: Sequence[Neighbour],
    spacing: Optional[str] = None,
) -> float:
    """Pressure from nearby placements, heavier for same or more important work.

    Priority 1 is the most important. Neighbours without a priority are ignored.
    """
    window_minutes, weight = SPACING_RULES.get(spacing or settings.priority_spacing, SPACING_RULES["moderate"])
    own = priority or 3
    center = (start + end) / 2
    penalty = 0.0
    for n_start, n_end, n_priority in neighbours:
        if not n_priority:
            continue
        distance = abs(center - (n_start + n_end) / 2)
        if distance > window_minutes:
            continue
        proximity = 1 - distance / window_minutes
        if n_priority <= own:
            penalty += weight * proximity * 10
        else:
            penalty += LOWER_PRIORITY_WEIGHT * proximity * 5
    return penalty


def density_penalty(start: int, end: int, neighbours: Sequence[Neighbour]) -> float:
    """Two points per placement centred within the density window, capped."""
    center = (start + end) / 2
    window_minutes = settings.slot_density_window_minutes
    crowd = sum(1 for n_start, n_end, _ in neighbours if abs(center - (n_start + n_end) / 2) <= window_minutes)
    return min(crowd * 2.0, DENSITY_CAP)


def _placements_by_day(db: Session, user_id: UUID, days: List[date]) -> Dict[date, List[Neighbour]]:
    rows = (
        db.query(ScheduleEntry.date, ScheduleEntry.start_time, ScheduleEntry.end_time, Task.priority)
        .join(Task, Task.id == ScheduleEntry.task_id)
        .filter(ScheduleEntry.user_id == user_id, ScheduleEntry.date.in_(days))
        .all()
    )
    placed: Dict[date, List[Neighbour]] = {}
    for day, start, end, task_priority in rows:
        placed.setdefault(day, []).append((to_minutes(start), to_minutes(end), task_priority))
    return placed


def _round_up(minutes: int, step: int) -> int:
    step = max(1, step)
    return ((minutes + step - 1) // step) * step
