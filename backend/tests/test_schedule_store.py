from __future__ import annotations

from datetime import date, time
from uuid import uuid4

import pytest

from tempo.core.errors import ConflictError, FatalError, ValidationError
from tempo.db.models.activity_log import ActivityLog
from tempo.db.models.plan import Plan
from tempo.db.models.task import Task
from tempo.db.models.user import User
from tempo.services import schedule_store


def _seed_plan_task(session, start=date(2024, 1, 1), end=date(2024, 1, 10)):
    user_id = uuid4()
    session.add(User(id=user_id))
    session.flush()
    plan = Plan(user_id=user_id, goal_text="Learn Spanish", start_date=start, end_date=end, status="active")
    session.add(plan)
    session.flush()
    task = Task(user_id=user_id, plan_id=plan.id, name="Vocabulary drill", estimated_duration_minutes=60)
    session.add(task)
    session.commit()
    return user_id, plan, task


def test_place_records_duration(db_session):
    user_id, plan, task = _seed_plan_task(db_session)

    entry = schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 30))

    assert entry.duration_minutes == 90
    assert entry.plan_id == plan.id
    assert [e.id for e in schedule_store.list_by_task(db_session, task.id)] == [entry.id]


def test_place_rejects_inverted_times(db_session):
    user_id, _, task = _seed_plan_task(db_session)

    with pytest.raises(ValidationError):
        schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(10, 0), time(9, 0))


def test_place_outside_plan_window_is_rejected(db_session):
    user_id, _, task = _seed_plan_task(db_session)

    with pytest.raises(ValidationError):
        schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 11), time(9, 0), time(10, 0))
    with pytest.raises(ValidationError):
        schedule_store.place_task(db_session, user_id, task.id, date(2023, 12, 31), time(9, 0), time(10, 0))


def test_split_task_placements_cannot_overlap_on_same_day(db_session):
    user_id, _, task = _seed_plan_task(db_session)
    schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 0))
    schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(10, 0), time(11, 0))

    with pytest.raises(ConflictError):
        schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 30), time(10, 30))

    assert len(schedule_store.list_by_task(db_session, task.id)) == 2


def test_move_keeps_duration_and_remembers_origin(db_session):
    user_id, _, task = _seed_plan_task(db_session)
    entry = schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 0))

    moved = schedule_store.move_entry(db_session, user_id, entry.id, date(2024, 1, 4), time(14, 0))

    assert moved.date == date(2024, 1, 4)
    assert moved.start_time == time(14, 0)
    assert moved.end_time == time(15, 0)
    assert moved.rescheduled_from == date(2024, 1, 2)
    events = db_session.query(ActivityLog).filter(ActivityLog.action_type == "task_moved").all()
    assert len(events) == 1
    assert events[0].action_payload["to"] == "2024-01-04"


def test_move_past_plan_end_needs_extension(db_session):
    user_id, plan, task = _seed_plan_task(db_session)
    entry = schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 0))

    with pytest.raises(ValidationError):
        schedule_store.move_entry(db_session, user_id, entry.id, date(2024, 1, 12))

    moved = schedule_store.move(db_session, entry.id, date(2024, 1, 12), allow_extension=True)
    assert moved.date == date(2024, 1, 12)
    db_session.rollback()


def test_move_by_another_user_is_refused(db_session):
    user_id, _, task = _seed_plan_task(db_session)
    entry = schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 0))

    with pytest.raises(FatalError):
        schedule_store.move_entry(db_session, uuid4(), entry.id, date(2024, 1, 3))


def test_list_by_plan_filters_by_date_range(db_session):
    user_id, plan, task = _seed_plan_task(db_session)
    for day in (2, 4, 6):
        schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, day), time(9, 0), time(10, 0))

    entries = schedule_store.list_by_plan(db_session, plan.id, date(2024, 1, 3), date(2024, 1, 6))

    assert [entry.date for entry in entries] == [date(2024, 1, 4), date(2024, 1, 6)]


def test_moving_to_another_day_counts_reschedules(db_session):
    user_id, _, task = _seed_plan_task(db_session)
    entry = schedule_store.place_task(db_session, user_id, task.id, date(2024, 1, 2), time(9, 0), time(10, 0))
    assert entry.reschedule_count == 0
    assert entry.last_rescheduled_at is None

    schedule_store.move_entry(db_session, user_id, entry.id, date(2024, 1, 2), time(11, 0))
    same_day = schedule_store.list_by_task(db_session, task.id)[0]
    assert same_day.reschedule_count == 0

    schedule_store.move_entry(db_session, user_id, entry.id, date(2024, 1, 3))
    moved = schedule_store.move_entry(db_session, user_id, entry.id, date(2024, 1, 5))

    assert moved.reschedule_count == 2
    assert moved.last_rescheduled_at is not None
    assert moved.rescheduled_from == date(2024, 1, 3)
