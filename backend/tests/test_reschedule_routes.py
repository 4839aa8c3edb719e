from __future__ import annotations

import asyncio
import threading
from uuid import uuid4

from tempo.api.routes import reschedules
from tempo.api.routes.reschedules import watch_disconnect
from tempo.core.errors import OperationCancelled
from tempo.services.overdue_detector import SweepResult


class _Request:
    def __init__(self, connected_polls):
        self.connected_polls = connected_polls
        self.polls = 0

    async def is_disconnected(self):
        self.polls += 1
        return self.polls > self.connected_polls


def test_disconnect_sets_the_cancel_event():
    request = _Request(connected_polls=2)
    cancel_event = threading.Event()

    asyncio.run(watch_disconnect(request, cancel_event, poll_seconds=0))

    assert cancel_event.is_set()
    assert request.polls == 3


def test_watcher_stops_once_the_sweep_is_cancelled_elsewhere():
    request = _Request(connected_polls=100)
    cancel_event = threading.Event()
    cancel_event.set()

    asyncio.run(watch_disconnect(request, cancel_event, poll_seconds=0))

    assert request.polls == 0


def test_sweep_route_hands_a_live_cancel_event_to_the_sweep(client, monkeypatch):
    test_client, _ = client
    user_id = uuid4()
    seen = []

    def fake_sweep(db, swept_user_id, *, cancel_event=None, **kwargs):
        seen.append(cancel_event)
        return SweepResult(user_id=swept_user_id)

    monkeypatch.setattr(reschedules, "sweep_user", fake_sweep)

    response = test_client.post("/reschedules/sweep", json={"user_id": str(user_id)})

    assert response.status_code == 200
    assert response.json()["proposals_created"] == 0
    assert len(seen) == 1
    assert isinstance(seen[0], threading.Event)
    assert not seen[0].is_set()


def test_cancelled_sweep_maps_to_499(client, monkeypatch):
    test_client, _ = client

    def cancelled(db, user_id, *, cancel_event=None, **kwargs):
        cancel_event.set()
        raise OperationCancelled("sweep cancelled", detail={"user_id": str(user_id)})

    monkeypatch.setattr(reschedules, "sweep_user", cancelled)

    response = test_client.post("/reschedules/sweep", json={"user_id": str(uuid4())})

    assert response.status_code == 499
    assert response.json()["error"] == "OperationCancelled"
