"""create maintenance_tasks table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_maintenance_tasks"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "maintenance_tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("schedule", sa.String(length=100), nullable=False),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_maintenance_tasks_next_run_at", "maintenance_tasks", ["next_run_at"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_maintenance_tasks_next_run_at", table_name="maintenance_tasks")
    op.drop_table("maintenance_tasks")
