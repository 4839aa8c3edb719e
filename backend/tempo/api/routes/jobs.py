"""Operational endpoints for scheduler jobs."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tempo.api.schemas.jobs import JobRunRequest, JobRunResponse
from tempo.core.config import settings
from tempo.core.errors import FatalError
from tempo.db.deps import get_db
from tempo.observability.metrics import log_metric
from tempo.observability.tracing import trace
from tempo.services.job_runner import run_expiry, run_health_snapshots, run_sweep_for_all_users

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "sweep_interval_seconds": settings.sweep_interval_seconds,
                "expiry_interval_minutes": settings.expiry_interval_minutes,
                "proposal_expiry_hours": settings.proposal_expiry_hours,
                "health_snapshot_time": f"{settings.health_snapshot_hour:02d}:{settings.health_snapshot_minute:02d}",
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
) -> JobRunResponse:
    if not settings.debug:
        raise FatalError("Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    start = perf_counter()
    with trace("jobs.run_now", metadata={"job": payload.job}, request_id=request_id):
        if payload.job == "sweep":
            user_ids = [payload.user_id] if payload.user_id else None
            result = run_sweep_for_all_users(db, user_ids=user_ids)
            response = JobRunResponse(
                job=payload.job,
                users_processed=result.users_processed,
                proposals_created=result.proposals_created,
                request_id=request_id or "",
            )
        elif payload.job == "expiry":
            expiry = run_expiry(db)
            response = JobRunResponse(
                job=payload.job,
                users_processed=0,
                proposals_resolved=expiry.approved + expiry.rejected + expiry.expired,
                request_id=request_id or "",
            )
        else:
            result = run_health_snapshots(db)
            response = JobRunResponse(
                job=payload.job,
                users_processed=result.users_processed,
                snapshots_written=result.snapshots_written,
                request_id=request_id or "",
            )

    latency_ms = (perf_counter() - start) * 1000
    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})
    log_metric("jobs.run_now.latency_ms", latency_ms, metadata={"job": payload.job})
    return response
