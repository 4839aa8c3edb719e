"""Database utilities and models."""

from tempo.db.base import Base
from tempo.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
