"""add recurrence templates and instances"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_recurrence"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("is_template", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.add_column("tasks", sa.Column("recurrence_rule", sa.JSON(), nullable=True))
    op.add_column("tasks", sa.Column("anchor_date", sa.Date(), nullable=True))
    op.add_column("tasks", sa.Column("next_due_date", sa.Date(), nullable=True))
    op.add_column(
        "tasks",
        sa.Column("instance_counter", sa.Integer(), nullable=False, server_default="0"),
    )
    op.add_column("tasks", sa.Column("template_state", sa.String(length=20), nullable=True))
    op.add_column(
        "tasks",
        sa.Column(
            "template_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.add_column("tasks", sa.Column("instance_number", sa.Integer(), nullable=True))
    op.add_column("tasks", sa.Column("occurrence_date", sa.Date(), nullable=True))
    op.create_index("ix_tasks_is_template", "tasks", ["is_template"], unique=False)
    op.create_index("ix_tasks_next_due_date", "tasks", ["next_due_date"], unique=False)
    op.create_index("ix_tasks_template_id", "tasks", ["template_id"], unique=False)
    op.create_unique_constraint(
        "uq_tasks_template_occurrence", "tasks", ["template_id", "occurrence_date"]
    )


def downgrade() -> None:
    op.drop_constraint("uq_tasks_template_occurrence", "tasks", type_="unique")
    op.drop_index("ix_tasks_template_id", table_name="tasks")
    op.drop_index("ix_tasks_next_due_date", table_name="tasks")
    op.drop_index("ix_tasks_is_template", table_name="tasks")
    op.drop_column("tasks", "occurrence_date")
    op.drop_column("tasks", "instance_number")
    op.drop_column("tasks", "template_id")
    op.drop_column("tasks", "template_state")
    op.drop_column("tasks", "instance_counter")
    op.drop_column("tasks", "next_due_date")
    op.drop_column("tasks", "anchor_date")
    op.drop_column("tasks", "recurrence_rule")
    op.drop_column("tasks", "is_template")
