"""Helpers for working with users and the rows they own."""
from __future__ import annotations

from typing import Type, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempo.core.errors import FatalError, NotFoundError
from tempo.db.models.user import User

M = TypeVar("M")


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create the row, tolerating a concurrent insert."""
    user = db.get(User, user_id)
    if user:
        return user

    savepoint = db.begin_nested()
    user = User(id=user_id)
    db.add(user)
    try:
        savepoint.commit()
        return user
    except IntegrityError:
        savepoint.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def load_owned(db: Session, model: Type[M], object_id: UUID, user_id: UUID, *, label: str, key: str) -> M:
    """Load a row by primary key and check it belongs to ``user_id``.

    Missing rows raise NotFoundError (404); someone else's rows raise
    FatalError (403).
    """
    row = db.get(model, object_id)
    if row is None:
        raise NotFoundError(f"{label} not found", detail={key: str(object_id)})
    if row.user_id != user_id:  # type: ignore[attr-defined]
        raise FatalError(f"{label} does not belong to user", detail={key: str(object_id)})
    return row
