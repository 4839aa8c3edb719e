"""ORM models exposed for metadata discovery."""
from tempo.db.models.activity_log import ActivityLog
from tempo.db.models.completion_record import CompletionRecord
from tempo.db.models.health_snapshot import HealthSnapshotRecord
from tempo.db.models.milestone import Milestone
from tempo.db.models.plan import Plan
from tempo.db.models.reschedule_proposal import RescheduleProposal
from tempo.db.models.schedule_entry import ScheduleEntry
from tempo.db.models.scope_version import ScopeVersion
from tempo.db.models.scheduling_history import SchedulingHistoryEntry
from tempo.db.models.task import Task
from tempo.db.models.user import User
from tempo.db.models.user_preferences import UserPreferences

__all__ = [
    "ActivityLog",
    "CompletionRecord",
    "HealthSnapshotRecord",
    "Milestone",
    "Plan",
    "RescheduleProposal",
    "ScheduleEntry",
    "ScopeVersion",
    "SchedulingHistoryEntry",
    "Task",
    "User",
    "UserPreferences",
]
