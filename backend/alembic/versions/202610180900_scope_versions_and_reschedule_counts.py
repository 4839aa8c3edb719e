"""Derived-state scope versions and per-placement reschedule counters."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202610180900"
down_revision = "202601150900"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "derived_scope_versions",
        sa.Column("scope_key", sa.String(length=80), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_derived_scope_versions_user_id", "derived_scope_versions", ["user_id"], unique=False)

    op.add_column(
        "task_schedule",
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )
    op.add_column("task_schedule", sa.Column("last_rescheduled_at", sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    op.drop_column("task_schedule", "last_rescheduled_at")
    op.drop_column("task_schedule", "reschedule_count")

    op.drop_index("ix_derived_scope_versions_user_id", table_name="derived_scope_versions")
    op.drop_table("derived_scope_versions")
