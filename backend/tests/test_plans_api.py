from __future__ import annotations

from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.task import Task


def _plan_payload(user_id: UUID, **overrides) -> dict:
    payload = {
        "user_id": str(user_id),
        "goal_text": "Run a half marathon",
        "start_date": "2024-01-01",
        "end_date": "2024-01-14",
        "milestones": [{"name": "Base building", "target_date": "2024-01-07"}],
        "tasks": [
            {
                "name": "Easy run",
                "estimated_duration_minutes": 45,
                "milestone_idx": 0,
                "placements": [
                    {"date": "2024-01-02", "start_time": "07:00:00", "end_time": "07:45:00"},
                    {"date": "2024-01-04", "start_time": "07:00:00", "end_time": "07:45:00"},
                ],
            },
            {"name": "Long run", "priority": 1, "placements": []},
        ],
    }
    payload.update(overrides)
    return payload


def _create_plan(client: TestClient, user_id: UUID, **overrides) -> dict:
    response = client.post("/plans", json=_plan_payload(user_id, **overrides))
    assert response.status_code == 201, response.text
    return response.json()["plan"]


def test_create_plan_persists_tasks_and_placements(client):
    test_client, session_factory = client
    user_id = uuid4()

    plan = _create_plan(test_client, user_id)

    assert plan["status"] == "active"
    assert plan["original_end_date"] is None
    session = session_factory()
    try:
        tasks = session.query(Task).filter(Task.plan_id == UUID(plan["id"])).order_by(Task.idx).all()
        assert [t.name for t in tasks] == ["Easy run", "Long run"]
        assert tasks[1].priority == 1
        assert session.query(ScheduleEntry).filter(ScheduleEntry.task_id == tasks[0].id).count() == 2
    finally:
        session.close()

    fetched = test_client.get(f"/plans/{plan['id']}", params={"user_id": str(user_id)})
    assert fetched.status_code == 200
    assert fetched.json()["plan"]["goal_text"] == "Run a half marathon"


def test_second_active_plan_conflicts_unless_replacing(client):
    test_client, _ = client
    user_id = uuid4()
    first = _create_plan(test_client, user_id)

    conflict = test_client.post("/plans", json=_plan_payload(user_id))
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "ConflictError"

    second = _create_plan(test_client, user_id, replace_active=True)
    old = test_client.get(f"/plans/{first['id']}", params={"user_id": str(user_id)}).json()["plan"]
    assert old["status"] == "paused"
    assert second["status"] == "active"


def test_placement_outside_plan_window_is_rejected(client):
    test_client, _ = client
    payload = _plan_payload(uuid4())
    payload["tasks"][0]["placements"][0]["date"] = "2024-02-01"

    response = test_client.post("/plans", json=payload)

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_plan_status_transitions(client):
    test_client, _ = client
    user_id = uuid4()
    plan = _create_plan(test_client, user_id)

    paused = test_client.patch(f"/plans/{plan['id']}/status", json={"user_id": str(user_id), "status": "paused"})
    assert paused.status_code == 200
    assert paused.json()["plan"]["status"] == "paused"

    resumed = test_client.patch(f"/plans/{plan['id']}/status", json={"user_id": str(user_id), "status": "active"})
    assert resumed.json()["plan"]["status"] == "active"


def test_plan_owned_by_someone_else_is_forbidden(client):
    test_client, _ = client
    plan = _create_plan(test_client, uuid4())

    response = test_client.get(f"/plans/{plan['id']}", params={"user_id": str(uuid4())})

    assert response.status_code == 403


def test_delete_plan_cascades(client):
    test_client, session_factory = client
    user_id = uuid4()
    plan = _create_plan(test_client, user_id)

    response = test_client.delete(f"/plans/{plan['id']}", params={"user_id": str(user_id)})
    assert response.status_code == 204

    assert test_client.get(f"/plans/{plan['id']}", params={"user_id": str(user_id)}).status_code == 404
    session = session_factory()
    try:
        assert session.query(Task).count() == 0
        assert session.query(ScheduleEntry).count() == 0
    finally:
        session.close()


def test_milestones_and_history_endpoints(client):
    test_client, _ = client
    user_id = uuid4()
    plan = _create_plan(test_client, user_id)

    milestones = test_client.get(f"/plans/{plan['id']}/milestones", params={"user_id": str(user_id)})
    assert milestones.status_code == 200
    row = milestones.json()["milestones"][0]
    assert row["name"] == "Base building"
    assert row["occurrences"] == 2
    assert row["complete"] is False

    history = test_client.get(f"/plans/{plan['id']}/history", params={"user_id": str(user_id)})
    assert history.status_code == 200
    assert history.json()["summary"] == "Plan was adjusted 0 times"
    assert history.json()["entries"] == []


def test_free_task_gets_one_placement(client):
    test_client, _ = client
    user_id = uuid4()
    day = "2024-05-02"

    response = test_client.post(
        "/tasks/free",
        json={"user_id": str(user_id), "name": "Call the bank", "duration_minutes": 30, "date": day, "start_time": "10:00:00"},
    )

    assert response.status_code == 201
    entry = response.json()["entry"]
    assert entry["plan_id"] is None
    assert entry["end_time"] == "10:30:00"
    assert entry["duration_minutes"] == 30


def test_free_task_must_fit_in_the_day(client):
    test_client, _ = client

    response = test_client.post(
        "/tasks/free",
        json={
            "user_id": str(uuid4()),
            "name": "All nighter",
            "duration_minutes": 120,
            "date": "2024-05-01",
            "start_time": "23:00:00",
        },
    )

    assert response.status_code == 422
