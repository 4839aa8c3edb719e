"""Shared cache for derived read-side state (health snapshots, milestone status).

Values are grouped by scope, a ``(user_id, plan_id)`` pair where ``plan_id``
is ``None`` for free-mode tasks. Each scope has a version row that every
mutation bumps inside its own transaction, and cache keys carry that version,
so once a write commits no API worker or scheduler process can be served a
value computed before it. Values live in Redis with a TTL; without a reachable
Redis every read computes.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar
from uuid import UUID

import redis
from pydantic import TypeAdapter
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.config import settings
from tempo.db.models.scope_version import ScopeVersion
from tempo.db.types import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "tempo:derived"

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Return the shared Redis client, or None when caching is disabled."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client
    if not settings.redis_url:
        return None

    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
    except (ConnectionError, TimeoutError, RedisError) as exc:
        logger.warning("Redis unavailable: %s. Derived-state caching disabled.", exc)
        return None
    logger.info("Redis connection established for derived-state cache")
    _redis_client = client
    return client


def reset_client() -> None:
    global _redis_client
    _redis_client = None


def scope_key(user_id: UUID, plan_id: Optional[UUID]) -> str:
    return f"{user_id}:{plan_id or 'free'}"


def cache_key(user_id: UUID, plan_id: Optional[UUID], version: int, name: str) -> str:
    return f"{KEY_PREFIX}:{scope_key(user_id, plan_id)}:v{version}:{name}"


def current_version(db: Session, user_id: UUID, plan_id: Optional[UUID]) -> int:
    version = (
        db.query(ScopeVersion.version)
        .filter(ScopeVersion.scope_key == scope_key(user_id, plan_id))
        .scalar()
    )
    return version or 0


def bump(db: Session, user_id: UUID, plan_id: Optional[UUID]) -> None:
    """Advance the scope's version inside the caller's open transaction.

    Call before ``commit``; a rollback takes the bump with it.
    """
    key = scope_key(user_id, plan_id)
    if _increment(db, key):
        return
    # Only the version insert may run into the race handled below.
    db.flush()
    savepoint = db.begin_nested()
    db.add(ScopeVersion(scope_key=key, user_id=user_id, version=1))
    try:
        savepoint.commit()
    except IntegrityError:
        # Another writer created the row first.
        savepoint.rollback()
        _increment(db, key)


def get_or_compute(
    db: Session,
    user_id: UUID,
    plan_id: Optional[UUID],
    name: str,
    adapter: TypeAdapter,
    compute: Callable[[], T],
) -> T:
    # The version is read before computing so a write that lands meanwhile
    # files this value under a key no later reader asks for.
    version = current_version(db, user_id, plan_id)
    key = cache_key(user_id, plan_id, version, name)
    client = get_redis_client()

    if client is not None:
        try:
            raw = client.get(key)
        except (ConnectionError, TimeoutError, RedisError) as exc:
            logger.warning("Cache get error for key %s: %s", key, exc)
            raw = None
        if raw:
            return adapter.validate_json(raw)

    value = compute()
    if client is not None:
        try:
            client.setex(key, settings.derived_cache_ttl_seconds, adapter.dump_json(value))
        except (ConnectionError, TimeoutError, RedisError) as exc:
            logger.warning("Cache set error for key %s: %s", key, exc)
    return value


def _increment(db: Session, key: str) -> bool:
    updated = (
        db.query(ScopeVersion)
        .filter(ScopeVersion.scope_key == key)
        .update(
            {ScopeVersion.version: ScopeVersion.version + 1, ScopeVersion.updated_at: utcnow()},
            synchronize_session=False,
        )
    )
    return bool(updated)
