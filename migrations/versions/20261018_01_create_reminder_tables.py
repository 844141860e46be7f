"""create notes, reminder_schedules and push_destinations

Revision ID: 20261018_01
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(length=8), nullable=False),
        sa.Column("is_muted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("times_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_notes_priority"),
        sa.CheckConstraint("times_sent >= 0", name="ck_notes_times_sent"),
    )
    op.create_index("ix_notes_user_id_created_at", "notes", ["user_id", "created_at"])

    op.create_table(
        "reminder_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("hour", sa.Integer(), nullable=False),
        sa.Column("minute", sa.Integer(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("notes_per_reminder", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("next_run_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("last_run_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_reminder_schedules_user_id", "reminder_schedules", ["user_id"])
    op.create_index("ix_reminder_schedules_next_run_at", "reminder_schedules", ["next_run_at"])

    op.create_table(
        "push_destinations",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=False, unique=True),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_registered_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_push_destinations_user_id", "push_destinations", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_push_destinations_user_id", table_name="push_destinations")
    op.drop_table("push_destinations")
    op.drop_index("ix_reminder_schedules_next_run_at", table_name="reminder_schedules")
    op.drop_index("ix_reminder_schedules_user_id", table_name="reminder_schedules")
    op.drop_table("reminder_schedules")
    op.drop_index("ix_notes_user_id_created_at", table_name="notes")
    op.drop_table("notes")
