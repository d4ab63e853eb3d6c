"""Initial day planner schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202601150900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("username", sa.Text(), nullable=True, unique=True),
        sa.Column("work_hours", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("energy_patterns", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )

    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default=sa.text("'Task'")),
        sa.Column("category", sa.String(length=32), nullable=False, server_default=sa.text("'Personal'")),
        sa.Column("subcategory", sa.String(length=32), nullable=True),
        sa.Column("time_horizon", sa.String(length=32), nullable=False, server_default=sa.text("'Week'")),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'not_started'")),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default=sa.text("'Medium'")),
        sa.Column("estimated_time", sa.Numeric(5, 2), nullable=True),
        sa.Column("progress", sa.Integer(), nullable=True),
        sa.Column("why", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("x_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_tasks_user_id", "tasks", ["user_id"], unique=False)
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)

    op.create_table(
        "recurring_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("task_name", sa.Text(), nullable=False),
        sa.Column("time_block", sa.Text(), nullable=False),
        sa.Column("quarter", sa.Integer(), nullable=True),
        sa.Column(
            "days_of_week",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("category", sa.String(length=32), nullable=False, server_default=sa.text("'Personal'")),
        sa.Column("subcategory", sa.String(length=32), nullable=True),
        sa.Column("priority", sa.String(length=16), nullable=False, server_default=sa.text("'Medium'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("quarter IS NULL OR quarter BETWEEN 1 AND 4", name="ck_recurring_tasks_quarter"),
    )
    op.create_index("ix_recurring_tasks_user_id", "recurring_tasks", ["user_id"], unique=False)

    op.create_table(
        "daily_schedules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_block", sa.Text(), nullable=False),
        sa.Column("quartile", sa.Integer(), nullable=False),
        sa.Column("planned_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actual_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'not_started'")),
        sa.Column("energy_impact", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reflection", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["planned_task_id"], ["tasks.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["actual_task_id"], ["tasks.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", "date", "time_block", "quartile", name="uq_daily_schedules_slot"),
        sa.CheckConstraint("quartile BETWEEN 1 AND 4", name="ck_daily_schedules_quartile"),
    )
    op.create_index("ix_daily_schedules_user_date", "daily_schedules", ["user_id", "date"], unique=False)

    op.create_table(
        "slot_occupants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("entry_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default=sa.text("'recurring'")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("recurring_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["entry_id"], ["daily_schedules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["recurring_task_id"], ["recurring_tasks.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_slot_occupants_entry_id", "slot_occupants", ["entry_id"], unique=False)

    op.create_table(
        "recurring_skips",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time_block", sa.Text(), nullable=False),
        sa.Column("quartile", sa.Integer(), nullable=False),
        sa.Column("recurring_key", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "user_id",
            "date",
            "time_block",
            "quartile",
            "recurring_key",
            name="uq_recurring_skips_occurrence",
        ),
    )
    op.create_index("ix_recurring_skips_user_date", "recurring_skips", ["user_id", "date"], unique=False)

    op.create_table(
        "agent_actions_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column(
            "action_payload",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_agent_actions_log_user_id", "agent_actions_log", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_agent_actions_log_user_id", table_name="agent_actions_log")
    op.drop_table("agent_actions_log")
    op.drop_index("ix_recurring_skips_user_date", table_name="recurring_skips")
    op.drop_table("recurring_skips")
    op.drop_index("ix_slot_occupants_entry_id", table_name="slot_occupants")
    op.drop_table("slot_occupants")
    op.drop_index("ix_daily_schedules_user_date", table_name="daily_schedules")
    op.drop_table("daily_schedules")
    op.drop_index("ix_recurring_tasks_user_id", table_name="recurring_tasks")
    op.drop_table("recurring_tasks")
    op.drop_index("ix_tasks_status", table_name="tasks")
    op.drop_index("ix_tasks_user_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("users")
