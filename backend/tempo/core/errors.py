"""Error taxonomy shared by the scheduling services.

Services raise these instead of HTTP errors so the same code paths can run
from request handlers and from background sweeps. ``tempo.api.errors``
translates them into responses.
"""
from __future__ import annotations

import logging

from sqlalchemy import exc as sa_exc

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base class for every error the scheduling core raises on purpose."""

    status_code = 500
    retryable = False

    def __init__(self, message: str, *, detail: dict | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class ValidationError(SchedulingError):
    """Malformed date, time or duration input; nothing has been written."""

    status_code = 422


class ConflictError(SchedulingError):
    """A uniqueness invariant would be violated."""

    status_code = 409


class NotFoundError(SchedulingError):
    """A referenced plan, task, entry or proposal no longer exists."""

    status_code = 404


class TransientError(SchedulingError):
    """Network or timeout failure talking to storage."""

    status_code = 503
    retryable = True


class FatalError(SchedulingError):
    """Authentication/ownership failure. Retrying cannot succeed."""

    status_code = 403


class OperationCancelled(SchedulingError):
    """In-flight work was aborted through its cancel event."""

    status_code = 499


_PERMISSION_MARKERS = ("permission denied", "insufficient privilege", "authentication failed")


def classify_db_error(exc: BaseException) -> SchedulingError:
    """Map a SQLAlchemy/DBAPI exception onto the taxonomy."""
    if isinstance(exc, SchedulingError):
        return exc
    message = str(getattr(exc, "orig", None) or exc)
    lowered = message.lower()
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return FatalError(message)
    if isinstance(exc, sa_exc.IntegrityError):
        return ConflictError(message)
    if isinstance(exc, (sa_exc.OperationalError, sa_exc.TimeoutError, sa_exc.DisconnectionError)):
        return TransientError(message)
    if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
        return TransientError(message)
    if isinstance(exc, TimeoutError):
        return TransientError(message or "operation timed out")
    logger.debug("Unclassified storage error: %r", exc)
    return SchedulingError(message)
