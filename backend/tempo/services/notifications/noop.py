"""Provider that only logs the message it would have sent."""
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from tempo.services.notifications.base import (
    NotificationResult,
    NotificationService,
    plan_adjusted_message,
    proposals_message,
)

logger = logging.getLogger(__name__)


class NoopNotificationService(NotificationService):
    def _log(self, kind: str, user_id: UUID, plan_id: Optional[UUID], message: str) -> NotificationResult:
        logger.info("Notification (noop) %s for user=%s plan=%s: %s", kind, user_id, plan_id or "free-mode", message)
        return NotificationResult(status="noop", reason="notification provider is noop", message=message)

    def notify_proposals_created(self, *, user_id, plan_id, proposal_count, request_id) -> NotificationResult:
        return self._log("proposals_created", user_id, plan_id, proposals_message(proposal_count))

    def notify_plan_adjusted(
        self,
        *,
        user_id,
        plan_id,
        tasks_rescheduled,
        days_extended,
        history_id,
        request_id,
    ) -> NotificationResult:
        return self._log("plan_adjusted", user_id, plan_id, plan_adjusted_message(tasks_rescheduled, days_extended))
