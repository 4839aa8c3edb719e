from __future__ import annotations

from datetime import date, time
from uuid import uuid4

import pytest

from tempo.core.errors import FatalError, ValidationError
from tempo.db.models.completion_record import CompletionRecord
from tempo.db.models.task import Task
from tempo.db.models.user import User
from tempo.services import schedule_store
from tempo.services.completion_tracker import completed_keys, is_completed, toggle


def _seed_free_task(session, days=(date(2024, 1, 1),)):
    user_id = uuid4()
    session.add(User(id=user_id))
    session.flush()
    task = Task(user_id=user_id, plan_id=None, name="Stretch", estimated_duration_minutes=30)
    session.add(task)
    session.commit()
    for day in days:
        schedule_store.place_task(session, user_id, task.id, day, time(7, 0), time(7, 30))
    return user_id, task


def test_toggle_twice_restores_original_state(db_session):
    user_id, task = _seed_free_task(db_session)
    kwargs = dict(user_id=user_id, task_id=task.id, plan_id=None, scheduled_date=date(2024, 1, 1))

    first = toggle(db_session, **kwargs)
    assert first.completed is True
    assert first.changed is True
    assert is_completed(db_session, task.id, date(2024, 1, 1))

    second = toggle(db_session, **kwargs)
    assert second.completed is False
    assert second.changed is True
    assert db_session.query(CompletionRecord).count() == 0


def test_toggle_is_per_occurrence(db_session):
    user_id, task = _seed_free_task(db_session, days=(date(2024, 1, 1), date(2024, 1, 5)))

    toggle(db_session, user_id=user_id, task_id=task.id, plan_id=None, scheduled_date=date(2024, 1, 1))

    assert completed_keys(db_session, [task.id]) == {(task.id, date(2024, 1, 1))}
    assert not is_completed(db_session, task.id, date(2024, 1, 5))


def test_toggle_requires_a_placement_on_that_date(db_session):
    user_id, task = _seed_free_task(db_session)

    with pytest.raises(ValidationError):
        toggle(db_session, user_id=user_id, task_id=task.id, plan_id=None, scheduled_date=date(2024, 1, 2))


def test_toggle_rejects_mismatched_plan(db_session):
    user_id, task = _seed_free_task(db_session)

    with pytest.raises(ValidationError):
        toggle(db_session, user_id=user_id, task_id=task.id, plan_id=uuid4(), scheduled_date=date(2024, 1, 1))


def test_toggle_by_other_user_is_refused(db_session):
    _, task = _seed_free_task(db_session)

    with pytest.raises(FatalError):
        toggle(db_session, user_id=uuid4(), task_id=task.id, plan_id=None, scheduled_date=date(2024, 1, 1))


def test_toggle_stores_actual_duration(db_session):
    user_id, task = _seed_free_task(db_session)

    toggle(
        db_session,
        user_id=user_id,
        task_id=task.id,
        plan_id=None,
        scheduled_date=date(2024, 1, 1),
        actual_duration_minutes=45,
    )

    record = db_session.query(CompletionRecord).one()
    assert record.actual_duration_minutes == 45
