from __future__ import annotations

import threading
from datetime import date, datetime, time, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from tempo.core.errors import OperationCancelled
from tempo.core.retry import RetryPolicy
from tempo.db.models.activity_log import ActivityLog
from tempo.db.models.plan import Plan
from tempo.db.models.reschedule_proposal import RescheduleProposal
from tempo.db.models.task import Task
from tempo.db.models.user import User
from tempo.services import overdue_detector, schedule_store
from tempo.services.completion_tracker import toggle
from tempo.services.overdue_detector import find_overdue_entries, sweep_user

TODAY = date(2024, 1, 3)
NOW = datetime(2024, 1, 3, 8, 0, tzinfo=timezone.utc)
NO_WAIT = RetryPolicy(base_delay=0)


def _seed(session, *, plan=True):
    user_id = uuid4()
    session.add(User(id=user_id))
    session.flush()
    plan_row = None
    if plan:
        plan_row = Plan(
            user_id=user_id,
            goal_text="Run a 10k",
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 10),
            status="active",
        )
        session.add(plan_row)
        session.flush()
    task = Task(user_id=user_id, plan_id=plan_row.id if plan_row else None, name="Tempo run")
    session.add(task)
    session.commit()
    entry = schedule_store.place_task(session, user_id, task.id, date(2024, 1, 1), time(9, 0), time(10, 0))
    return user_id, plan_row, task, entry


def test_missed_task_gets_one_pending_proposal(db_session):
    user_id, plan, task, entry = _seed(db_session)

    result = sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    assert result.proposals_created == 1
    proposal = db_session.query(RescheduleProposal).one()
    assert proposal.status == "pending"
    assert proposal.task_id == task.id
    assert proposal.plan_id == plan.id
    assert proposal.original_date == date(2024, 1, 1)
    assert proposal.schedule_entry_id == entry.id
    assert proposal.suggested_date == TODAY
    assert proposal.suggested_start_time == time(9, 0)
    assert proposal.suggested_end_time == time(10, 0)


def test_sweep_is_idempotent_within_a_day(db_session):
    user_id, _, _, _ = _seed(db_session)

    sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)
    again = sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    assert again.proposals_created == 0
    assert db_session.query(RescheduleProposal).count() == 1


def test_completed_occurrence_is_not_overdue(db_session):
    user_id, plan, task, _ = _seed(db_session)
    toggle(db_session, user_id=user_id, task_id=task.id, plan_id=plan.id, scheduled_date=date(2024, 1, 1))

    assert find_overdue_entries(db_session, user_id, plan.id, TODAY) == []
    result = sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)
    assert result.proposals_created == 0


def test_free_mode_tasks_are_swept_too(db_session):
    user_id, _, _, _ = _seed(db_session, plan=False)

    result = sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    assert result.proposals_created == 1
    assert db_session.query(RescheduleProposal).one().plan_id is None


def test_suggestions_skip_busy_time_and_each_other(db_session):
    user_id, plan, _, _ = _seed(db_session)
    other = Task(user_id=user_id, plan_id=plan.id, name="Strength")
    db_session.add(other)
    db_session.commit()
    schedule_store.place_task(db_session, user_id, other.id, date(2024, 1, 2), time(9, 0), time(10, 0))

    sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    proposals = db_session.query(RescheduleProposal).order_by(RescheduleProposal.original_date).all()
    assert [p.suggested_start_time for p in proposals] == [time(9, 0), time(10, 0)]
    assert {p.suggested_date for p in proposals} == {TODAY}


def test_today_slots_start_after_now(db_session):
    user_id, _, _, _ = _seed(db_session)
    late_morning = datetime(2024, 1, 3, 10, 5, tzinfo=timezone.utc)

    sweep_user(db_session, user_id, today=TODAY, now=late_morning, policy=NO_WAIT)

    proposal = db_session.query(RescheduleProposal).one()
    assert proposal.suggested_date == TODAY
    assert proposal.suggested_start_time == time(10, 15)


def test_sweep_records_activity(db_session):
    user_id, _, _, _ = _seed(db_session)

    sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    proposed = db_session.query(ActivityLog).filter(ActivityLog.action_type == "reschedule_proposed").one()
    assert proposed.action_payload["original_date"] == "2024-01-01"
    assert "Tempo run" in proposed.reason


def test_transient_failures_abandon_the_scope(db_session, monkeypatch):
    user_id, _, _, _ = _seed(db_session)
    calls = []

    def flaky(*args, **kwargs):
        calls.append(args)
        raise OperationalError("INSERT", {}, Exception("connection reset by peer"))

    monkeypatch.setattr(overdue_detector, "sweep_scope", flaky)

    result = sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)

    # Free mode and the active plan, three attempts each.
    assert result.scopes_failed == 2
    assert len(calls) == 6
    assert db_session.query(RescheduleProposal).count() == 0


def test_cancelled_sweep_rolls_back(db_session):
    user_id, _, _, _ = _seed(db_session)
    stop = threading.Event()
    stop.set()

    with pytest.raises(OperationCancelled):
        sweep_user(db_session, user_id, today=TODAY, now=NOW, cancel_event=stop, policy=NO_WAIT)
    assert db_session.query(RescheduleProposal).count() == 0


def test_concurrent_sweep_losing_the_insert_race_counts_already_proposed(db_session, monkeypatch):
    user_id, plan, _, entry = _seed(db_session)
    sweep_user(db_session, user_id, today=TODAY, now=NOW, policy=NO_WAIT)
    # A sweep that read the overdue list before the first one committed.
    monkeypatch.setattr(overdue_detector, "find_overdue_entries", lambda *args: [entry])

    result = overdue_detector.sweep_scope(db_session, user_id, plan.id, TODAY, NOW)

    assert result.overdue_found == 1
    assert result.already_proposed == 1
    assert result.proposals_created == 0
    assert db_session.query(RescheduleProposal).count() == 1
    assert db_session.query(ActivityLog).filter(ActivityLog.action_type == "reschedule_proposed").count() == 1
