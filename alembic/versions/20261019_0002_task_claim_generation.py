"""Add claim generation counter so reports from superseded claims can be rejected."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "daily_tasks",
        sa.Column("claim_generation", sa.Integer(), nullable=False, server_default="0"),
    )
    op.execute(
        sa.text(
            """
            UPDATE daily_tasks
            SET claim_generation = 1
            WHERE started_at IS NOT NULL
            """,
        ),
    )


def downgrade() -> None:
    with op.batch_alter_table("daily_tasks") as batch_op:
        batch_op.drop_column("claim_generation")
