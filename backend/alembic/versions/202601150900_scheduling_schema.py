"""Scheduling and plan-health schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202601150900"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True, nullable=False),
        _timestamp("created_at"),
    )

    op.create_table(
        "user_preferences",
        _uuid("user_id", primary_key=True, nullable=False),
        sa.Column("smart_scheduling_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("workday_start_minute", sa.Integer(), nullable=True),
        sa.Column("workday_end_minute", sa.Integer(), nullable=True),
        sa.Column("lunch_start_minute", sa.Integer(), nullable=True),
        sa.Column("lunch_end_minute", sa.Integer(), nullable=True),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "plans",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        sa.Column("goal_text", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("original_end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'active'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("status IN ('active', 'paused', 'completed')", name="ck_plans_status"),
    )
    op.create_index("ix_plans_user_id", "plans", ["user_id"], unique=False)
    op.create_index(
        "uq_plans_one_active_per_user",
        "plans",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "milestones",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("plan_id", nullable=False),
        sa.Column("idx", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_milestones_plan_id", "milestones", ["plan_id"], unique=False)

    op.create_table(
        "tasks",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("plan_id", nullable=True),
        _uuid("milestone_id", nullable=True),
        sa.Column("idx", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("3")),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["milestone_id"], ["milestones.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_tasks_user_id", "tasks", ["user_id"], unique=False)
    op.create_index("ix_tasks_plan_id", "tasks", ["plan_id"], unique=False)
    op.create_index("ix_tasks_milestone_id", "tasks", ["milestone_id"], unique=False)

    op.create_table(
        "task_schedule",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("task_id", nullable=False),
        _uuid("plan_id", nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("rescheduled_from", sa.Date(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.CheckConstraint("end_time > start_time", name="ck_task_schedule_time_order"),
    )
    op.create_index("ix_task_schedule_task_id", "task_schedule", ["task_id"], unique=False)
    op.create_index("ix_task_schedule_user_date", "task_schedule", ["user_id", "date"], unique=False)
    op.create_index("ix_task_schedule_plan_date", "task_schedule", ["plan_id", "date"], unique=False)

    op.create_table(
        "task_completions",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("task_id", nullable=False),
        _uuid("plan_id", nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        _timestamp("completed_at"),
        sa.Column("actual_duration_minutes", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("task_id", "scheduled_date", name="uq_task_completions_task_date"),
    )
    op.create_index("ix_task_completions_plan_id", "task_completions", ["plan_id"], unique=False)
    op.create_index("ix_task_completions_user_id", "task_completions", ["user_id"], unique=False)

    op.create_table(
        "reschedule_proposals",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("task_id", nullable=False),
        _uuid("plan_id", nullable=True),
        _uuid("schedule_entry_id", nullable=False),
        sa.Column("original_date", sa.Date(), nullable=False),
        sa.Column("original_start_time", sa.Time(), nullable=True),
        sa.Column("original_end_time", sa.Time(), nullable=True),
        sa.Column("suggested_date", sa.Date(), nullable=False),
        sa.Column("suggested_start_time", sa.Time(), nullable=False),
        sa.Column("suggested_end_time", sa.Time(), nullable=False),
        sa.Column("applied_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("resolution_source", sa.String(length=20), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False, server_default=sa.text("'auto_reschedule_overdue'")),
        _timestamp("created_at"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["schedule_entry_id"], ["task_schedule.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'expired')",
            name="ck_reschedule_proposals_status",
        ),
    )
    op.create_index("ix_reschedule_proposals_user_status", "reschedule_proposals", ["user_id", "status"], unique=False)
    op.create_index("ix_reschedule_proposals_task_date", "reschedule_proposals", ["task_id", "original_date"], unique=False)
    op.create_index(
        "uq_reschedule_proposals_pending_task_date",
        "reschedule_proposals",
        ["task_id", "original_date"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "scheduling_history",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("plan_id", nullable=True),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("old_end_date", sa.Date(), nullable=True),
        sa.Column("new_end_date", sa.Date(), nullable=True),
        sa.Column("days_extended", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tasks_rescheduled", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "reason",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_scheduling_history_plan_id", "scheduling_history", ["plan_id"], unique=False)
    op.create_index("ix_scheduling_history_user_id", "scheduling_history", ["user_id"], unique=False)

    op.create_table(
        "health_snapshots",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("plan_id", nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("health_score", sa.Float(), nullable=False),
        sa.Column("color_state", sa.String(length=20), nullable=False),
        sa.Column("has_scheduled_tasks", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("progress", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("consistency", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("efficiency", sa.Float(), nullable=True),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("plan_id", "snapshot_date", name="uq_health_snapshots_plan_date"),
    )
    op.create_index("ix_health_snapshots_user_plan", "health_snapshots", ["user_id", "plan_id"], unique=False)

    op.create_table(
        "activity_log",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column(
            "action_payload",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_activity_log_user_created", "activity_log", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_activity_log_user_created", table_name="activity_log")
    op.drop_table("activity_log")

    op.drop_index("ix_health_snapshots_user_plan", table_name="health_snapshots")
    op.drop_table("health_snapshots")

    op.drop_index("ix_scheduling_history_user_id", table_name="scheduling_history")
    op.drop_index("ix_scheduling_history_plan_id", table_name="scheduling_history")
    op.drop_table("scheduling_history")

    op.drop_index("uq_reschedule_proposals_pending_task_date", table_name="reschedule_proposals")
    op.drop_index("ix_reschedule_proposals_task_date", table_name="reschedule_proposals")
    op.drop_index("ix_reschedule_proposals_user_status", table_name="reschedule_proposals")
    op.drop_table("reschedule_proposals")

    op.drop_index("ix_task_completions_user_id", table_name="task_completions")
    op.drop_index("ix_task_completions_plan_id", table_name="task_completions")
    op.drop_table("task_completions")

    op.drop_index("ix_task_schedule_plan_date", table_name="task_schedule")
    op.drop_index("ix_task_schedule_user_date", table_name="task_schedule")
    op.drop_index("ix_task_schedule_task_id", table_name="task_schedule")
    op.drop_table("task_schedule")

    op.drop_index("ix_tasks_milestone_id", table_name="tasks")
    op.drop_index("ix_tasks_plan_id", table_name="tasks")
    op.drop_index("ix_tasks_user_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_milestones_plan_id", table_name="milestones")
    op.drop_table("milestones")

    op.drop_index("uq_plans_one_active_per_user", table_name="plans")
    op.drop_index("ix_plans_user_id", table_name="plans")
    op.drop_table("plans")

    op.drop_table("user_preferences")
    op.drop_table("users")
