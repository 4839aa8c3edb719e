"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import pytest

from tempo.core.config import settings
from tempo.observability import client as client_module
from tempo.observability.tracing import annotate, trace


class _DummyTrace:
    def __init__(self, name=None, metadata=None, **kwargs):
        self.name = name
        self.metadata = metadata or {}
        self.error_info = None
        self.ended = False

    def update(self, metadata=None, error_info=None, **kwargs):
        if metadata:
            self.metadata.update(metadata)
        if error_info:
            self.error_info = error_info

    def end(self):
        self.ended = True


class _DummyOpik:
    def __init__(self, *args, **kwargs):
        self.kwargs = kwargs
        self.traces = []

    def trace(self, **kwargs):
        span = _DummyTrace(**kwargs)
        self.traces.append(span)
        return span


@pytest.fixture()
def fresh_client():
    client_module.reset_opik_client()
    yield client_module
    client_module.reset_opik_client()


def test_tracing_is_noop_when_opik_is_disabled(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(settings, "opik_enabled", False)

    assert fresh_client.init_opik() is None
    with trace("demo") as span:
        assert span is None
        annotate(span, ignored=True)


def test_enabled_without_api_key_stays_off(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(settings, "opik_enabled", True)
    monkeypatch.setattr(settings, "opik_api_key", None)
    monkeypatch.setattr(fresh_client, "Opik", _DummyOpik)

    assert fresh_client.get_opik_client() is None


def test_traces_record_metadata_and_errors(monkeypatch, fresh_client) -> None:
    monkeypatch.setattr(settings, "opik_enabled", True)
    monkeypatch.setattr(settings, "opik_api_key", "test-key")
    monkeypatch.setattr(settings, "opik_project", "tempo-test")
    monkeypatch.setattr(fresh_client, "Opik", _DummyOpik)

    opik = fresh_client.init_opik()
    assert opik.kwargs["project_name"] == "tempo-test"

    with trace("sweep", metadata={"scopes": 2, "skipped": None}, user_id="u1", request_id="r1") as span:
        annotate(span, proposals=1)
    assert span.metadata == {"scopes": 2, "user_id": "u1", "request_id": "r1", "proposals": 1}
    assert span.ended is True

    with pytest.raises(ValueError):
        with trace("broken"):
            raise ValueError("bad input")
    assert opik.traces[-1].error_info == {"message": "bad input", "type": "ValueError"}
    assert opik.traces[-1].ended is True


def test_app_serves_requests_with_tracing_enabled(monkeypatch, fresh_client, client) -> None:
    test_client, _ = client
    monkeypatch.setattr(settings, "opik_enabled", True)
    monkeypatch.setattr(settings, "opik_api_key", "test-key")
    monkeypatch.setattr(fresh_client, "Opik", _DummyOpik)
    fresh_client.reset_opik_client()

    response = test_client.get("/health", headers={"X-Request-Id": "traced"})

    assert response.status_code == 200
    opik = fresh_client.get_opik_client()
    assert [t.name for t in opik.traces] == ["http.health_check"]
    assert opik.traces[0].metadata["request_id"] == "traced"
