"""create scheduling tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_scheduling_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_recurrences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("interval", sa.Integer(), nullable=True),
        sa.Column("max_occurrences", sa.Integer(), nullable=True),
        sa.Column("completed_occurrences", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_period_start", sa.Date(), nullable=True),
        sa.Column("days_of_week", sa.JSON(), nullable=True),
        sa.Column("days_of_month", sa.JSON(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=512), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("importance", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_fixed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("fixed_start_time", sa.Time(), nullable=True),
        sa.Column("fixed_end_time", sa.Time(), nullable=True),
        sa.Column("recurrence_id", sa.Integer(), sa.ForeignKey("task_recurrences.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_tasks_owner_id", "tasks", ["owner_id"], unique=False)
    op.create_index("ix_tasks_recurrence_id", "tasks", ["recurrence_id"], unique=False)

    op.create_table(
        "task_occurrences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("limit_date", sa.Date(), nullable=True),
        sa.Column("target_time_consumption", sa.Float(), nullable=True),
        sa.Column("time_consumed", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Pending"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_task_occurrences_task_id", "task_occurrences", ["task_id"], unique=False)
    op.create_index("ix_task_occurrences_start_date", "task_occurrences", ["start_date"], unique=False)
    op.create_index("ix_task_occurrences_status", "task_occurrences", ["status"], unique=False)

    op.create_table(
        "calendar_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column("occurrence_id", sa.Integer(), sa.ForeignKey("task_occurrences.id"), nullable=True),
        sa.Column("is_fixed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("start", sa.DateTime(), nullable=False),
        sa.Column("finish", sa.DateTime(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("dedicated_time", sa.Float(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_calendar_events_owner_id", "calendar_events", ["owner_id"], unique=False)
    op.create_index("ix_calendar_events_occurrence_id", "calendar_events", ["occurrence_id"], unique=False)
    op.create_index("ix_calendar_events_start", "calendar_events", ["start"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_calendar_events_start", table_name="calendar_events")
    op.drop_index("ix_calendar_events_occurrence_id", table_name="calendar_events")
    op.drop_index("ix_calendar_events_owner_id", table_name="calendar_events")
    op.drop_table("calendar_events")
    op.drop_index("ix_task_occurrences_status", table_name="task_occurrences")
    op.drop_index("ix_task_occurrences_start_date", table_name="task_occurrences")
    op.drop_index("ix_task_occurrences_task_id", table_name="task_occurrences")
    op.drop_table("task_occurrences")
    op.drop_index("ix_tasks_recurrence_id", table_name="tasks")
    op.drop_index("ix_tasks_owner_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("task_recurrences")
