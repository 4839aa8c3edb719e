"""Logging setup shared by the API process and the scheduler worker."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict

from tempo.core.context import get_request_id, get_scope

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(scope)s | %(message)s"

# Third-party loggers that are too chatty at the application level.
_QUIET_LOGGERS = {
    "apscheduler": "WARNING",
    "opik": "WARNING",
    "httpx": "WARNING",
}


class ContextFilter(logging.Filter):
    """Stamp records with the correlation id and the sweep scope, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"
        record.scope = get_scope() or "-"
        return True


def build_logging_config(log_level: str, *, log_sql: bool = False) -> Dict[str, Any]:
    loggers: Dict[str, Dict[str, Any]] = {name: {"level": level} for name, level in _QUIET_LOGGERS.items()}
    loggers["sqlalchemy.engine"] = {"level": "INFO" if log_sql else "WARNING"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "filters": {"context": {"()": "tempo.core.logging.ContextFilter"}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": log_level,
                "filters": ["context"],
            }
        },
        "loggers": loggers,
        "root": {"handlers": ["console"], "level": log_level},
    }


def configure_logging(*, log_level: str = "INFO", log_sql: bool = False) -> None:
    """Install the console handler once per process; later calls are ignored."""
    if getattr(configure_logging, "_configured", False):
        return
    dictConfig(build_logging_config(log_level.upper(), log_sql=log_sql))
    logging.getLogger(__name__).debug("Logging configured at %s (sql=%s)", log_level, log_sql)
    configure_logging._configured = True  # type: ignore[attr-defined]
