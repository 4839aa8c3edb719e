from __future__ import annotations

from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from tempo.core.config import settings
from tempo.worker import scheduler_main


class _FakeSession:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_register_jobs_uses_configured_intervals(monkeypatch):
    monkeypatch.setattr(settings, "sweep_interval_seconds", 30)
    monkeypatch.setattr(settings, "expiry_interval_minutes", 15)
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler_main.register_jobs(scheduler)

    ids = {job.id for job in scheduler.get_jobs()}
    assert ids == {scheduler_main.SWEEP_JOB_ID, scheduler_main.EXPIRY_JOB_ID, scheduler_main.SNAPSHOT_JOB_ID}
    sweep = scheduler.get_job(scheduler_main.SWEEP_JOB_ID)
    assert sweep.trigger.interval == timedelta(seconds=30)
    assert sweep.max_instances == 1
    assert scheduler.get_job(scheduler_main.EXPIRY_JOB_ID).trigger.interval == timedelta(minutes=15)


def test_run_job_closes_session_and_returns_result():
    session = _FakeSession()

    result = scheduler_main.run_job("Demo", lambda db: "done", session_factory=lambda: session)

    assert result == "done"
    assert session.closed is True


def test_run_job_swallows_failures_after_logging(caplog):
    session = _FakeSession()

    def boom(db):
        raise RuntimeError("database went away")

    result = scheduler_main.run_job("Demo", boom, session_factory=lambda: session)

    assert result is None
    assert session.closed is True
    assert "Demo job failed" in caplog.text


def test_sweep_job_passes_the_shutdown_event(monkeypatch):
    seen = {}

    def fake_sweep(db, cancel_event=None):
        seen["cancel_event"] = cancel_event
        return "ok"

    monkeypatch.setattr(scheduler_main, "run_sweep_for_all_users", fake_sweep)
    monkeypatch.setattr(scheduler_main, "SessionLocal", _FakeSession)

    assert scheduler_main.sweep_job() == "ok"
    assert seen["cancel_event"] is scheduler_main.stop_event
