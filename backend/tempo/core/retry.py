"""Exponential backoff for persistence calls made by background sweeps."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from tempo.core.config import settings
from tempo.core.errors import OperationCancelled, TransientError, classify_db_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 5.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based): 1s, 2s, 4s... capped."""
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            multiplier=settings.retry_multiplier,
            max_delay=settings.retry_max_delay_seconds,
        )


def run_with_retry(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    on_retry: Optional[Callable[[int, TransientError], None]] = None,
    label: str = "operation",
) -> T:
    """Run ``operation`` retrying only transient storage failures.

    Storage exceptions are classified first; anything that is not transient
    propagates on the first failure. The last ``TransientError`` is re-raised
    once the attempts are used up. Waiting happens on ``cancel_event`` so a
    shutdown interrupts the backoff instead of sleeping through it.
    """
    policy = policy or RetryPolicy.from_settings()
    attempt = 0
    while True:
        attempt += 1
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled(f"{label} cancelled before attempt {attempt}")
        try:
            return operation()
        except Exception as exc:
            error = classify_db_error(exc)
            if not isinstance(error, TransientError):
                if error is exc:
                    raise
                raise error from exc
            if attempt >= policy.max_attempts:
                logger.warning("%s failed after %s attempts: %s", label, attempt, error.message)
                raise error from exc
            delay = policy.delay_for(attempt)
            logger.info("%s hit a transient error (attempt %s/%s), retrying in %.1fs", label, attempt, policy.max_attempts, delay)
            if on_retry is not None:
                on_retry(attempt, error)
            waiter = cancel_event or threading.Event()
            if waiter.wait(delay):
                raise OperationCancelled(f"{label} cancelled during backoff") from exc
