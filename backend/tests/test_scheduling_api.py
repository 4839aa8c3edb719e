from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from tempo.core.clock import local_today


def _create_plan(client: TestClient, user_id: UUID, today: date) -> dict:
    """Plan that started three days ago with a run missed the day before yesterday."""
    response = client.post(
        "/plans",
        json={
            "user_id": str(user_id),
            "goal_text": "Get back into running",
            "start_date": (today - timedelta(days=3)).isoformat(),
            "end_date": (today + timedelta(days=5)).isoformat(),
            "tasks": [
                {
                    "name": "Intervals",
                    "estimated_duration_minutes": 60,
                    "placements": [
                        {
                            "date": (today - timedelta(days=2)).isoformat(),
                            "start_time": "09:00:00",
                            "end_time": "10:00:00",
                        },
                        {
                            "date": (today + timedelta(days=1)).isoformat(),
                            "start_time": "09:00:00",
                            "end_time": "10:00:00",
                        },
                    ],
                }
            ],
        },
    )
    assert response.status_code == 201, response.text
    plan = response.json()["plan"]
    tasks = client.get(f"/plans/{plan['id']}/schedule", params={"user_id": str(user_id)}).json()["entries"]
    return {"plan": plan, "entries": tasks, "task_id": tasks[0]["task_id"]}


def test_schedule_listing_and_move(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)
    entry = created["entries"][1]

    target = (today + timedelta(days=2)).isoformat()
    moved = test_client.patch(f"/schedule/{entry['id']}", json={"user_id": str(user_id), "date": target})

    assert moved.status_code == 200
    body = moved.json()["entry"]
    assert body["date"] == target
    assert body["rescheduled_from"] == entry["date"]
    assert entry["reschedule_count"] == 0
    assert body["reschedule_count"] == 1
    assert body["last_rescheduled_at"] is not None

    by_task = test_client.get(f"/tasks/{created['task_id']}/schedule", params={"user_id": str(user_id)})
    assert [e["date"] for e in by_task.json()["entries"]] == [created["entries"][0]["date"], target]


def test_adding_a_split_placement(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)

    response = test_client.post(
        "/schedule",
        json={
            "user_id": str(user_id),
            "task_id": created["task_id"],
            "date": today.isoformat(),
            "start_time": "15:00:00",
            "end_time": "15:30:00",
        },
    )

    assert response.status_code == 201
    assert response.json()["entry"]["duration_minutes"] == 30


def test_completion_toggle_round_trip(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)
    payload = {
        "user_id": str(user_id),
        "task_id": created["task_id"],
        "plan_id": created["plan"]["id"],
        "scheduled_date": created["entries"][0]["date"],
    }

    first = test_client.post("/completions/toggle", json=payload)
    second = test_client.post("/completions/toggle", json=payload)

    assert first.status_code == 200
    assert first.json()["completed"] is True
    assert second.json()["completed"] is False


def test_session_start_sweep_then_approve(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)
    plan_id = created["plan"]["id"]

    sweep = test_client.post("/reschedules/sweep", json={"user_id": str(user_id)})
    assert sweep.status_code == 200
    assert sweep.json()["proposals_created"] == 1
    proposal = sweep.json()["proposals"][0]
    assert proposal["original_date"] == created["entries"][0]["date"]
    assert proposal["suggested_date"] >= today.isoformat()

    again = test_client.post("/reschedules/sweep", json={"user_id": str(user_id)})
    assert again.json()["proposals_created"] == 0

    pending = test_client.get("/reschedules", params={"user_id": str(user_id)})
    assert [p["id"] for p in pending.json()["proposals"]] == [proposal["id"]]

    approved = test_client.post(f"/reschedules/{proposal['id']}/approve", json={"user_id": str(user_id)})
    assert approved.status_code == 200
    assert approved.json()["outcome"] == "applied"
    assert approved.json()["tasks_rescheduled"] == 1

    repeat = test_client.post(f"/reschedules/{proposal['id']}/approve", json={"user_id": str(user_id)})
    assert repeat.json()["outcome"] == "already_approved"

    history = test_client.get(f"/plans/{plan_id}/history", params={"user_id": str(user_id)})
    assert history.json()["summary"] == "Plan was adjusted 1 time"


def test_reject_then_batch_has_nothing_pending(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)
    plan_id = created["plan"]["id"]
    proposal = test_client.post("/reschedules/sweep", json={"user_id": str(user_id)}).json()["proposals"][0]

    rejected = test_client.post(f"/reschedules/{proposal['id']}/reject", json={"user_id": str(user_id)})
    assert rejected.status_code == 200
    assert rejected.json()["proposal"]["status"] == "rejected"

    batch = test_client.post("/reschedules/approve-batch", json={"user_id": str(user_id), "plan_id": plan_id})
    assert batch.status_code == 200
    assert batch.json()["outcome"] == "nothing_pending"

    conflict = test_client.post(
        "/reschedules/approve-batch",
        json={"user_id": str(user_id), "proposal_ids": [proposal["id"]]},
    )
    assert conflict.status_code == 409

    listed = test_client.get("/reschedules", params={"user_id": str(user_id), "status": "all"})
    assert [p["status"] for p in listed.json()["proposals"]] == ["rejected"]


def test_plan_health_endpoint(client):
    test_client, _ = client
    user_id = uuid4()
    today = local_today()
    created = _create_plan(test_client, user_id, today)
    plan_id = created["plan"]["id"]

    response = test_client.get(f"/plans/{plan_id}/health", params={"user_id": str(user_id)})

    assert response.status_code == 200
    body = response.json()
    snapshot = body["snapshot"]
    assert snapshot["has_scheduled_tasks"] is True
    assert snapshot["overdue_occurrences"] == 1
    assert 0.0 <= snapshot["health_score"] <= 100.0
    assert snapshot["color_state"] in {"good", "degrading", "critical"}
    assert body["history"] == []
    assert "1 overdue task waiting for a new slot" in body["insights"]


def test_free_mode_health_without_tasks(client):
    test_client, _ = client

    response = test_client.get("/health/free-mode", params={"user_id": str(uuid4())})

    assert response.status_code == 200
    assert response.json()["snapshot"]["color_state"] == "no_data"
    assert response.json()["insights"] == ["No scheduled tasks yet"]


def test_missing_entry_returns_404_with_request_id(client):
    test_client, _ = client

    response = test_client.patch(
        f"/schedule/{uuid4()}",
        json={"user_id": str(uuid4()), "date": "2024-01-01"},
        headers={"X-Request-Id": "req-404"},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundError"
    assert response.json()["request_id"] == "req-404"
