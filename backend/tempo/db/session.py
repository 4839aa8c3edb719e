"""Engine and session factory."""
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from tempo.core.config import settings


def _connect_args(database_url: str) -> dict:
    url = make_url(database_url)
    if url.get_backend_name() == "postgresql":
        return {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"}
    if url.get_backend_name() == "sqlite":
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    future=True,
    connect_args=_connect_args(settings.database_url),
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
