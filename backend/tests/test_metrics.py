"""Tests for metrics helpers."""
from __future__ import annotations

from typing import Any, Dict

import pytest

from tempo.observability import client as opik_client
from tempo.observability import metrics


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(opik_client, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("demo_metric", 42, metadata={"foo": "bar"})

    assert dummy_client.traces, "Metric call should record a trace"
    assert dummy_client.traces[0].name == "metric:demo_metric"
    assert dummy_client.traces[0].metadata["value"] == 42
    assert dummy_client.traces[0].metadata["foo"] == "bar"
    assert dummy_client.traces[0].ended is True


def test_log_metric_is_noop_without_client(monkeypatch) -> None:
    monkeypatch.setattr(opik_client, "get_opik_client", lambda: None)

    metrics.log_metric("ignored", 1)


def test_timed_operation_reports_failure(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(opik_client, "get_opik_client", lambda: dummy_client)

    with pytest.raises(RuntimeError):
        with metrics.timed_operation("sweep", metadata={"user_id": "u1"}) as extra:
            extra["scopes"] = 2
            raise RuntimeError("boom")

    by_name = {t.name: t for t in dummy_client.traces}
    assert by_name["metric:sweep.success"].metadata["value"] == 0
    assert by_name["metric:sweep.success"].metadata["scopes"] == 2
    assert "metric:sweep.latency_ms" in by_name
