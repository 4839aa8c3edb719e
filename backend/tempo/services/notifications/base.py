"""Notification provider interface and the copy every provider sends."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass
class NotificationResult:
    status: str
    reason: str
    message: Optional[str] = None


def proposals_message(proposal_count: int) -> str:
    if proposal_count == 1:
        return "1 missed task has a suggested new slot. Review it to keep your plan on track."
    return f"{proposal_count} missed tasks have suggested new slots. Review them to keep your plan on track."


def plan_adjusted_message(tasks_rescheduled: int, days_extended: int) -> str:
    moved = "1 task was" if tasks_rescheduled == 1 else f"{tasks_rescheduled} tasks were"
    if days_extended > 0:
        unit = "day" if days_extended == 1 else "days"
        return f"Your plan was adjusted: {moved} rescheduled and the end date moved {days_extended} {unit} later."
    return f"Your plan was adjusted: {moved} rescheduled."


class NotificationService:
    """Providers deliver the two user-facing scheduling notices.

    Implementations return a ``NotificationResult`` instead of raising for
    delivery problems; the hooks log the outcome to the activity feed.
    """

    def notify_proposals_created(
        self,
        *,
        user_id: UUID,
        plan_id: Optional[UUID],
        proposal_count: int,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError

    def notify_plan_adjusted(
        self,
        *,
        user_id: UUID,
        plan_id: Optional[UUID],
        tasks_rescheduled: int,
        days_extended: int,
        history_id: UUID,
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError
