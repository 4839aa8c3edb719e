from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from tempo.db.models.plan import Plan
from tempo.db.models.scheduling_history import HistoryIsAppendOnly, SchedulingHistoryEntry
from tempo.db.models.user import User
from tempo.services import scheduling_history


def _seed_plan(session):
    user_id = uuid4()
    session.add(User(id=user_id))
    session.flush()
    plan = Plan(user_id=user_id, goal_text="Read 12 books", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
    session.add(plan)
    session.commit()
    return user_id, plan.id


def _record(session, user_id, plan_id, day, **kwargs):
    entry = scheduling_history.record(
        session,
        user_id=user_id,
        plan_id=plan_id,
        adjustment_date=day,
        days_extended=kwargs.get("days_extended", 0),
        tasks_rescheduled=kwargs.get("tasks_rescheduled", 1),
        reason={"type": "reschedule_approved"},
    )
    session.commit()
    return entry


def test_summary_counts_adjustments(db_session):
    user_id, plan_id = _seed_plan(db_session)
    assert scheduling_history.summarize(db_session, plan_id) == "Plan was adjusted 0 times"

    _record(db_session, user_id, plan_id, date(2024, 2, 1))
    assert scheduling_history.summarize(db_session, plan_id) == "Plan was adjusted 1 time"

    _record(db_session, user_id, plan_id, date(2024, 2, 8), days_extended=2)
    assert scheduling_history.summarize(db_session, plan_id) == "Plan was adjusted 2 times"
    assert [e.adjustment_date for e in scheduling_history.list_entries(db_session, plan_id)] == [
        date(2024, 2, 1),
        date(2024, 2, 8),
    ]


def test_negative_extension_is_stored_as_zero(db_session):
    user_id, plan_id = _seed_plan(db_session)

    entry = _record(db_session, user_id, plan_id, date(2024, 2, 1), days_extended=-3)

    assert entry.days_extended == 0


def test_history_rows_cannot_be_updated(db_session):
    user_id, plan_id = _seed_plan(db_session)
    _record(db_session, user_id, plan_id, date(2024, 2, 1))

    entry = db_session.query(SchedulingHistoryEntry).one()
    entry.tasks_rescheduled = 5
    with pytest.raises(HistoryIsAppendOnly):
        db_session.commit()
    db_session.rollback()


def test_history_rows_cannot_be_deleted_individually(db_session):
    user_id, plan_id = _seed_plan(db_session)
    _record(db_session, user_id, plan_id, date(2024, 2, 1))

    db_session.delete(db_session.query(SchedulingHistoryEntry).one())
    with pytest.raises(HistoryIsAppendOnly):
        db_session.commit()
    db_session.rollback()
    assert scheduling_history.adjustment_count(db_session, plan_id) == 1


def test_free_mode_has_no_adjustment_count(db_session):
    assert scheduling_history.adjustment_count(db_session, None) == 0
