"""Correlation context carried into log records."""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional
from uuid import UUID, uuid4

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
scope_ctx_var: ContextVar[str | None] = ContextVar("scope", default=None)


def get_request_id() -> str | None:
    """Return the current request id if available."""
    return request_id_ctx_var.get()


def get_scope() -> str | None:
    return scope_ctx_var.get()


@contextmanager
def bind_request_id(value: str | None = None, *, prefix: str = "job") -> Iterator[str]:
    """Bind a correlation id for work that does not come in through HTTP.

    Background sweeps use this so their log lines can be grepped together the
    same way a request's lines can.
    """
    request_id = value or f"{prefix}-{uuid4().hex[:12]}"
    token = request_id_ctx_var.set(request_id)
    try:
        yield request_id
    finally:
        request_id_ctx_var.reset(token)


@contextmanager
def bind_scope(user_id: UUID, plan_id: Optional[UUID]) -> Iterator[str]:
    """Tag log lines with the ``user/plan`` scope a sweep is working on."""
    label = f"{user_id}/{plan_id or 'free-mode'}"
    token = scope_ctx_var.set(label)
    try:
        yield label
    finally:
        scope_ctx_var.reset(token)
