from tempo.db.base import Base
from tempo.db import models  # noqa: F401  ensure models are loaded


def test_metadata_contains_scheduling_tables() -> None:
    expected = {
        "users",
        "user_preferences",
        "plans",
        "milestones",
        "tasks",
        "task_schedule",
        "task_completions",
        "reschedule_proposals",
        "scheduling_history",
        "health_snapshots",
        "activity_log",
    }

    assert expected.issubset(Base.metadata.tables.keys())


def test_schedule_times_are_checked() -> None:
    table = Base.metadata.tables["task_schedule"]
    names = {c.name for c in table.constraints}

    assert "ck_task_schedule_time_order" in names
