"""Initial game account and daily task schema."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "game_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("game_type", sa.String(), nullable=False),
        sa.Column("game_username", sa.String(), nullable=False),
        sa.Column("game_password_encrypted", sa.Text(), nullable=True),
        sa.Column("settings_json", sa.Text(), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("game_data_json", sa.Text(), nullable=True),
        sa.Column("last_game_data_sync", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_game_accounts_user_id", "game_accounts", ["user_id"])
    op.create_index("ix_game_accounts_game_type", "game_accounts", ["game_type"])

    op.create_table(
        "daily_tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("game_account_id", sa.Integer(), nullable=False),
        sa.Column("task_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("log_details", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["game_account_id"], ["game_accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_daily_tasks_status", "daily_tasks", ["status"])
    op.create_index("ix_daily_tasks_task_date", "daily_tasks", ["task_date"])
    op.create_index(
        "ix_daily_tasks_account_date",
        "daily_tasks",
        ["game_account_id", "task_date"],
    )


def downgrade() -> None:
    op.drop_index("ix_daily_tasks_account_date", table_name="daily_tasks")
    op.drop_index("ix_daily_tasks_task_date", table_name="daily_tasks")
    op.drop_index("ix_daily_tasks_status", table_name="daily_tasks")
    op.drop_table("daily_tasks")
    op.drop_index("ix_game_accounts_game_type", table_name="game_accounts")
    op.drop_index("ix_game_accounts_user_id", table_name="game_accounts")
    op.drop_table("game_accounts")
