"""Notification service factory."""
from __future__ import annotations

import logging
from functools import lru_cache

from tempo.core.config import settings
from tempo.services.notifications.base import NotificationService
from tempo.services.notifications.noop import NoopNotificationService

logger = logging.getLogger(__name__)

PROVIDERS = {"noop": NoopNotificationService}


@lru_cache
def get_notification_service() -> NotificationService:
    provider = settings.notifications_provider.lower()
    service_cls = PROVIDERS.get(provider)
    if service_cls is None:
        logger.warning("Unknown notifications provider %r, falling back to noop", provider)
        service_cls = NoopNotificationService
    return service_cls()
