"""Insight strings from metric deltas against the rolling snapshot history."""
from __future__ import annotations

from typing import List, Optional, Sequence

from tempo.db.models.health_snapshot import HealthSnapshotRecord
from tempo.services.health_scorer import HealthSnapshot

# Order here is the order insights are returned in.
TRACKED_METRICS = (
    ("health_score", "Health"),
    ("progress", "Progress"),
    ("consistency", "Consistency"),
    ("efficiency", "Efficiency"),
)
MIN_DELTA = 0.1
STREAK_MIN_DAYS = 3


def build_insights(
    current: HealthSnapshot,
    history: Sequence[HealthSnapshotRecord],
    adjustments: Optional[int] = None,
) -> List[str]:
    """Stable, ordered list; picking which one to show is up to the client."""
    if not current.has_scheduled_tasks:
        return ["No scheduled tasks yet"]

    insights: List[str] = []
    baseline = _baseline(current, history)
    if baseline is not None:
        span = (current.as_of - baseline.snapshot_date).days
        period = "this week" if span <= 7 else f"over the last {span} days"
        for attr, label in TRACKED_METRICS:
            before = getattr(baseline, attr)
            after = getattr(current, attr)
            if before is None or after is None:
                continue
            delta = round(float(after) - float(before), 1)
            if abs(delta) < MIN_DELTA:
                continue
            direction = "up" if delta > 0 else "down"
            insights.append(f"{label} {direction} {abs(delta):.1f}% {period}")

    if current.overdue_occurrences:
        noun = "task" if current.overdue_occurrences == 1 else "tasks"
        insights.append(f"{current.overdue_occurrences} overdue {noun} waiting for a new slot")
    if current.streak_days >= STREAK_MIN_DAYS:
        insights.append(f"{current.streak_days}-day completion streak")

    count = current.adjustments if adjustments is None else adjustments
    if count:
        insights.append(f"Plan was adjusted {count} time" + ("" if count == 1 else "s"))

    if not insights:
        insights.append("Not enough history for trends yet" if baseline is None else "Holding steady")
    return insights


def _baseline(current: HealthSnapshot, history: Sequence[HealthSnapshotRecord]) -> Optional[HealthSnapshotRecord]:
    earlier = [row for row in history if row.snapshot_date < current.as_of]
    if not earlier:
        return None
    return min(earlier, key=lambda row: row.snapshot_date)
