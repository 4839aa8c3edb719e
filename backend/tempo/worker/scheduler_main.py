"""Scheduler worker: overdue sweeps, proposal expiry and daily health snapshots."""
from __future__ import annotations

import logging
import signal
import threading
from time import perf_counter
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.core.logging import configure_logging
from tempo.db.session import SessionLocal
from tempo.services.job_runner import run_expiry, run_health_snapshots, run_sweep_for_all_users

logger = logging.getLogger(__name__)

# Set on shutdown; in-flight sweeps watch it and roll back.
stop_event = threading.Event()

SWEEP_JOB_ID = "overdue_sweep_job"
EXPIRY_JOB_ID = "proposal_expiry_job"
SNAPSHOT_JOB_ID = "health_snapshot_job"


def run_job(
    name: str,
    work: Callable[[Session], Any],
    session_factory: Optional[Callable[[], Session]] = None,
) -> Any:
    """Run one job on a fresh session; failures are logged, never raised into APScheduler."""
    session = (session_factory or SessionLocal)()
    start = perf_counter()
    try:
        result = work(session)
    except Exception:
        logger.exception("%s job failed after %.0f ms", name, (perf_counter() - start) * 1000)
        return None
    finally:
        session.close()
    logger.info("%s job complete in %.0f ms: %s", name, (perf_counter() - start) * 1000, result)
    return result


def sweep_job() -> Any:
    return run_job("Sweep", lambda db: run_sweep_for_all_users(db, cancel_event=stop_event))


def expiry_job() -> Any:
    return run_job("Expiry", run_expiry)


def snapshot_job() -> Any:
    return run_job("Health snapshot", run_health_snapshots)


def register_jobs(scheduler: BackgroundScheduler) -> None:
    # Sweeps and expiry must not overlap with themselves; a late tick is merged.
    scheduler.add_job(
        sweep_job,
        trigger="interval",
        seconds=settings.sweep_interval_seconds,
        id=SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        expiry_job,
        trigger="interval",
        minutes=settings.expiry_interval_minutes,
        id=EXPIRY_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.add_job(
        snapshot_job,
        trigger="cron",
        hour=settings.health_snapshot_hour,
        minute=settings.health_snapshot_minute,
        id=SNAPSHOT_JOB_ID,
        replace_existing=True,
    )
    logger.info(
        "Registered jobs: sweep every %ss, expiry every %sm, snapshots at %02d:%02d %s",
        settings.sweep_interval_seconds,
        settings.expiry_interval_minutes,
        settings.health_snapshot_hour,
        settings.health_snapshot_minute,
        settings.scheduler_timezone,
    )


def main() -> None:
    configure_logging(log_level=settings.log_level, log_sql=settings.log_sql)
    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    if settings.scheduler_enabled:
        register_jobs(scheduler)
        scheduler.start()
        if settings.jobs_run_on_startup:
            sweep_job()
    else:
        logger.warning("Scheduler disabled via config; worker will idle")

    def shutdown(signum, frame):  # pragma: no cover - signal handler
        logger.info("Scheduler worker stopping (signal=%s)", signum)
        stop_event.set()
        if scheduler.running:
            scheduler.shutdown(wait=False)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        stop_event.wait()
    except KeyboardInterrupt:  # pragma: no cover - manual stop
        shutdown(signal.SIGINT, None)


if __name__ == "__main__":  # pragma: no cover - manual launch
    main()
