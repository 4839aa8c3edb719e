"""Opik SDK client holder.

Tracing is optional: without the SDK, or with ``OPIK_ENABLED=false``, every
helper in this package degrades to a no-op.
"""
from __future__ import annotations

import logging
from threading import Lock
from typing import Optional

from tempo.core.config import settings

try:
    from opik import Opik
except ImportError:  # pragma: no cover
    Opik = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_lock = Lock()
_state: dict = {"client": None, "attempted": False}


def init_opik() -> Optional["Opik"]:
    """Create the Opik client on first use; later calls return the cached result."""
    with _lock:
        if _state["attempted"]:
            return _state["client"]
        _state["attempted"] = True

        if Opik is None or not settings.opik_enabled:
            return None
        if not settings.opik_api_key:
            logger.warning("OPIK_ENABLED is set but OPIK_API_KEY is missing; tracing stays off.")
            return None
        try:
            _state["client"] = Opik(project_name=settings.opik_project, api_key=settings.opik_api_key)
        except Exception as exc:  # pragma: no cover - sdk/network failure
            logger.warning("Opik init failed, tracing disabled: %s", exc)
            return None

    logger.info("Opik tracing enabled (project=%s).", settings.opik_project)
    return _state["client"]


def get_opik_client() -> Optional["Opik"]:
    """Return the cached Opik client if tracing is enabled."""
    return _state["client"] if _state["attempted"] else init_opik()


def reset_opik_client() -> None:
    """Forget the cached client so settings changes take effect (tests, reloads)."""
    with _lock:
        _state["client"] = None
        _state["attempted"] = False
