from __future__ import annotations

from datetime import date, timedelta
from uuid import uuid4

from tempo.db.models.health_snapshot import HealthSnapshotRecord
from tempo.services.health_insights import build_insights
from tempo.services.health_scorer import HealthSnapshot

AS_OF = date(2024, 3, 8)


def _snapshot(**overrides):
    values = dict(
        user_id=uuid4(),
        plan_id=uuid4(),
        as_of=AS_OF,
        has_scheduled_tasks=True,
        progress=80.0,
        consistency=75.0,
        efficiency=53.2,
        health_score=85.0,
        color_state="good",
        streak_days=0,
        adjustments=0,
    )
    values.update(overrides)
    return HealthSnapshot(**values)


def _history_row(days_ago, **overrides):
    values = dict(
        snapshot_date=AS_OF - timedelta(days=days_ago),
        health_score=85.0,
        color_state="good",
        has_scheduled_tasks=True,
        progress=80.0,
        consistency=75.0,
        efficiency=50.0,
        streak_days=0,
    )
    values.update(overrides)
    return HealthSnapshotRecord(**values)


def test_no_data_has_a_single_insight():
    assert build_insights(_snapshot(has_scheduled_tasks=False), []) == ["No scheduled tasks yet"]


def test_weekly_delta_is_reported():
    insights = build_insights(_snapshot(), [_history_row(7), _history_row(3, efficiency=52.0)])

    assert insights == ["Efficiency up 3.2% this week"]


def test_longer_windows_name_the_span():
    insights = build_insights(_snapshot(health_score=70.0), [_history_row(14)])

    assert "Health down 15.0% over the last 14 days" in insights


def test_overdue_streak_and_adjustments_follow_trends():
    current = _snapshot(overdue_occurrences=2, streak_days=4)

    insights = build_insights(current, [_history_row(7)], adjustments=3)

    assert insights == [
        "Efficiency up 3.2% this week",
        "2 overdue tasks waiting for a new slot",
        "4-day completion streak",
        "Plan was adjusted 3 times",
    ]


def test_fallbacks_without_movement():
    assert build_insights(_snapshot(), []) == ["Not enough history for trends yet"]
    assert build_insights(_snapshot(efficiency=50.0), [_history_row(7)]) == ["Holding steady"]
