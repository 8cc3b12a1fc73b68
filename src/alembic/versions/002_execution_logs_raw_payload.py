"""Execution event log and raw webhook bodies

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 12:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
UUID = sa.Uuid()


def upgrade() -> None:
    op.create_table(
        "workflow_execution_logs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("execution_id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column("level", sa.String(length=10), nullable=False),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["execution_id"], ["workflow_executions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_workflow_execution_logs_execution_seq", "workflow_execution_logs", ["execution_id", "seq"]
    )
    op.create_index(
        "ix_workflow_execution_logs_tenant_created", "workflow_execution_logs", ["tenant_id", "created_at"]
    )

    op.add_column("webhook_logs", sa.Column("payload_raw", sa.LargeBinary(), nullable=True))


def downgrade() -> None:
    op.drop_column("webhook_logs", "payload_raw")
    op.drop_table("workflow_execution_logs")
