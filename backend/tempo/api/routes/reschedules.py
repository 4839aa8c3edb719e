"""Reschedule proposal routes: session-start sweep, listing and resolution."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from tempo.api.schemas.reschedules import (
    ApprovalResponse,
    ApproveRequest,
    BatchApproveRequest,
    ProposalListResponse,
    ProposalSummary,
    RejectRequest,
    RejectResponse,
    SweepRequest,
    SweepResponse,
)
from tempo.db.deps import get_db
from tempo.db.models.reschedule_proposal import RescheduleProposal
from tempo.observability.metrics import log_metric, timed_operation
from tempo.observability.tracing import annotate, trace
from tempo.services import reschedule_workflow
from tempo.services.overdue_detector import sweep_user
from tempo.services.reschedule_workflow import ApprovalResult, ProposalOverride

logger = logging.getLogger(__name__)

router = APIRouter()


# How often the session-start sweep checks whether its client is still there.
DISCONNECT_POLL_SECONDS = 0.5


async def watch_disconnect(
    request: Request,
    cancel_event: threading.Event,
    poll_seconds: float = DISCONNECT_POLL_SECONDS,
) -> None:
    """Set ``cancel_event`` as soon as the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling sweep")
            cancel_event.set()
            return
        await asyncio.sleep(poll_seconds)


def _sweep_and_load(db: Session, user_id: UUID, cancel_event: threading.Event):
    outcome = sweep_user(db, user_id, cancel_event=cancel_event)
    proposal_ids = [pid for scope in outcome.scopes for pid in scope.proposal_ids]
    proposals = (
        db.query(RescheduleProposal).filter(RescheduleProposal.id.in_(proposal_ids)).all() if proposal_ids else []
    )
    return outcome, proposals


@router.post("/reschedules/sweep", response_model=SweepResponse, tags=["reschedules"])
async def run_sweep(
    payload: SweepRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> SweepResponse:
    """Sweep a user's schedule for missed work, typically at session start.

    The sweep runs in the threadpool and is cancelled if the client disconnects.
    """
    request_id = getattr(http_request.state, "request_id", None)
    cancel_event = threading.Event()
    watcher = asyncio.create_task(watch_disconnect(http_request, cancel_event))
    try:
        with timed_operation("reschedule.sweep", {"user_id": str(payload.user_id)}), trace(
            "reschedule.sweep",
            metadata={"route": "/reschedules/sweep"},
            user_id=str(payload.user_id),
            request_id=request_id,
        ) as span:
            outcome, proposals = await run_in_threadpool(_sweep_and_load, db, payload.user_id, cancel_event)
            annotate(span, proposals_created=outcome.proposals_created, scopes_failed=outcome.scopes_failed)
    finally:
        watcher.cancel()
    return SweepResponse(
        user_id=payload.user_id,
        proposals_created=outcome.proposals_created,
        scopes_failed=outcome.scopes_failed,
        proposals=[ProposalSummary.model_validate(p) for p in proposals],
        request_id=request_id or "",
    )


@router.get("/reschedules", response_model=ProposalListResponse, tags=["reschedules"])
def list_reschedules(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID"),
    status: Optional[str] = Query("pending", pattern="^(pending|approved|rejected|expired|all)$"),
    plan_id: Optional[UUID] = Query(default=None),
    db: Session = Depends(get_db),
) -> ProposalListResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with trace("reschedule.list", metadata={"status": status}, user_id=str(user_id), request_id=request_id):
        proposals = reschedule_workflow.list_proposals(
            db,
            user_id,
            status=None if status == "all" else status,
            plan_id=plan_id,
        )
    log_metric("reschedule.list.count", len(proposals), metadata={"user_id": str(user_id)})
    return ProposalListResponse(
        proposals=[ProposalSummary.model_validate(p) for p in proposals],
        request_id=request_id or "",
    )


@router.post("/reschedules/approve-batch", response_model=ApprovalResponse, tags=["reschedules"])
def approve_batch(
    payload: BatchApproveRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ApprovalResponse:
    """Apply several proposals in one transaction with one history entry."""
    request_id = getattr(http_request.state, "request_id", None)
    overrides = {
        item.proposal_id: ProposalOverride(item.date, item.start_time, item.end_time) for item in payload.overrides
    }
    with timed_operation("reschedule.approve_batch", {"user_id": str(payload.user_id)}), trace(
        "reschedule.approve_batch",
        metadata={"plan_id": str(payload.plan_id) if payload.plan_id else None},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        result = reschedule_workflow.approve_batch(
            db,
            payload.user_id,
            plan_id=payload.plan_id,
            proposal_ids=payload.proposal_ids,
            overrides=overrides,
        )
    return _approval_response(result, request_id)


@router.post("/reschedules/{proposal_id}/approve", response_model=ApprovalResponse, tags=["reschedules"])
def approve_proposal(
    proposal_id: UUID,
    payload: ApproveRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ApprovalResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with timed_operation("reschedule.approve", {"proposal_id": str(proposal_id)}), trace(
        "reschedule.approve",
        metadata={"proposal_id": str(proposal_id)},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        result = reschedule_workflow.approve(
            db,
            payload.user_id,
            proposal_id,
            payload.target_date,
            payload.start_time,
            payload.end_time,
        )
    return _approval_response(result, request_id)


@router.post("/reschedules/{proposal_id}/reject", response_model=RejectResponse, tags=["reschedules"])
def reject_proposal(
    proposal_id: UUID,
    payload: RejectRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> RejectResponse:
    request_id = getattr(http_request.state, "request_id", None)
    with timed_operation("reschedule.reject", {"proposal_id": str(proposal_id)}), trace(
        "reschedule.reject",
        metadata={"proposal_id": str(proposal_id)},
        user_id=str(payload.user_id),
        request_id=request_id,
    ):
        proposal = reschedule_workflow.reject(db, payload.user_id, proposal_id)
    return RejectResponse(proposal=ProposalSummary.model_validate(proposal), request_id=request_id or "")


def _approval_response(result: ApprovalResult, request_id: Optional[str]) -> ApprovalResponse:
    if result.already_approved:
        outcome = "already_approved"
    elif not result.proposals:
        outcome = "nothing_pending"
    else:
        outcome = "applied"
    return ApprovalResponse(
        proposals=[ProposalSummary.model_validate(p) for p in result.proposals],
        tasks_rescheduled=result.tasks_rescheduled,
        days_extended=result.days_extended,
        new_end_date=result.new_end_date,
        history_id=result.history.id if result.history is not None else None,
        outcome=outcome,
        request_id=request_id or "",
    )
