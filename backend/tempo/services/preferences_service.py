"""User settings provider for the scheduling core."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.db.models.user_preferences import UserPreferences
from tempo.services.activity_feed import record_event
from tempo.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkdayWindow:
    start_minute: int
    end_minute: int
    lunch_start_minute: int
    lunch_end_minute: int


class SettingsProvider:
    """Interface read by the approval workflow when a proposal expires."""

    def smart_scheduling_enabled(self, user_id: UUID) -> bool:
        raise NotImplementedError


class DatabaseSettingsProvider(SettingsProvider):
    """Reads ``user_preferences`` on every call; values are never cached."""

    def __init__(self, db: Session):
        self.db = db

    def smart_scheduling_enabled(self, user_id: UUID) -> bool:
        prefs = self.db.get(UserPreferences, user_id, populate_existing=True)
        return bool(prefs.smart_scheduling_enabled) if prefs else False


class StaticSettingsProvider(SettingsProvider):
    """Callable-backed provider, handy for jobs driven by another settings store."""

    def __init__(self, lookup: Callable[[UUID], bool]):
        self.lookup = lookup

    def smart_scheduling_enabled(self, user_id: UUID) -> bool:
        return bool(self.lookup(user_id))


def get_or_create_preferences(db: Session, user_id: UUID) -> UserPreferences:
    prefs = db.get(UserPreferences, user_id)
    if prefs:
        return prefs
    get_or_create_user(db, user_id)
    savepoint = db.begin_nested()
    prefs = UserPreferences(user_id=user_id, smart_scheduling_enabled=False)
    db.add(prefs)
    try:
        savepoint.commit()
    except IntegrityError:
        savepoint.rollback()
        prefs = db.get(UserPreferences, user_id)
        if prefs is None:
            raise
    return prefs


def set_smart_scheduling(db: Session, user_id: UUID, enabled: bool) -> UserPreferences:
    prefs = get_or_create_preferences(db, user_id)
    if bool(prefs.smart_scheduling_enabled) != enabled:
        prefs.smart_scheduling_enabled = enabled
        record_event(
            db,
            user_id=user_id,
            action_type="preferences_updated",
            payload={"smart_scheduling_enabled": enabled},
        )
        logger.info("Smart scheduling %s for user %s", "enabled" if enabled else "disabled", user_id)
    db.commit()
    db.refresh(prefs)
    return prefs


def workday_window(db: Session, user_id: UUID) -> WorkdayWindow:
    prefs: Optional[UserPreferences] = db.get(UserPreferences, user_id)

    def pick(value: Optional[int], default: int) -> int:
        return default if value is None else int(value)

    return WorkdayWindow(
        start_minute=pick(prefs.workday_start_minute if prefs else None, settings.workday_start_minute),
        end_minute=pick(prefs.workday_end_minute if prefs else None, settings.workday_end_minute),
        lunch_start_minute=pick(prefs.lunch_start_minute if prefs else None, settings.lunch_start_minute),
        lunch_end_minute=pick(prefs.lunch_end_minute if prefs else None, settings.lunch_end_minute),
    )
