from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tempo.core.config import settings
from tempo.db import Base
from tempo.db.deps import get_db
from tempo.main import app
from tempo.services import derived_cache


class FakeRedis:
    """In-memory stand-in for the few Redis calls the derived cache makes."""

    def __init__(self):
        self._store = {}
        self._ttls = {}

    def get(self, key):
        return self._store.get(key)

    def setex(self, key, ttl, value):
        self._store[key] = value.decode() if isinstance(value, bytes) else value
        self._ttls[key] = ttl

    def delete(self, *keys):
        for key in keys:
            self._store.pop(key, None)
            self._ttls.pop(key, None)

    def keys(self):
        return list(self._store)

    def ttl(self, key):
        return self._ttls.get(key, -2)

    def ping(self):
        return True


@pytest.fixture(autouse=True)
def _no_shared_cache(monkeypatch):
    monkeypatch.setattr(settings, "redis_url", None)
    derived_cache.reset_client()
    yield
    derived_cache.reset_client()


@pytest.fixture()
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(derived_cache, "get_redis_client", lambda: client)
    return client


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover - sqlite setup
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "notifications_enabled", False)
    with TestClient(app) as test_client:
        yield test_client, session_factory
    app.dependency_overrides.clear()
