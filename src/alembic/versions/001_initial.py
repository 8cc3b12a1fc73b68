"""Initial schema: workflows, executions, integrations, synced data, webhooks

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
UUID = sa.Uuid()


def upgrade() -> None:
    op.create_table(
        "workflows",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("schedule", sa.String(length=100), nullable=True),
        sa.Column("config", JSON, nullable=False),
        sa.Column("team_id", UUID, nullable=True),
        sa.Column("shared_team_ids", JSON, nullable=False),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        sa.Column("next_run_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_workflows_tenant_id", "workflows", ["tenant_id"])
    op.create_index("ix_workflows_team_id", "workflows", ["team_id"])
    op.create_index("ix_workflows_next_run_at", "workflows", ["next_run_at"])
    op.create_index("ix_workflows_tenant_enabled", "workflows", ["tenant_id", "enabled"])

    op.create_table(
        "workflow_executions",
        sa.Column("id", UUID, nullable=False),
        sa.Column("workflow_id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("trigger_type", sa.String(length=20), nullable=False),
        sa.Column("date_range_since", sa.String(length=10), nullable=True),
        sa.Column("date_range_until", sa.String(length=10), nullable=True),
        sa.Column("total_days", sa.Integer(), nullable=False),
        sa.Column("days_processed", sa.Integer(), nullable=False),
        sa.Column("meta_fetched", sa.Integer(), nullable=False),
        sa.Column("pos_fetched", sa.Integer(), nullable=False),
        sa.Column("errors", JSON, nullable=False),
        sa.Column("cancel_requested", sa.Boolean(), nullable=False),
        sa.Column("queue_job_id", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_workflow_executions_workflow_status", "workflow_executions", ["workflow_id", "status"]
    )
    op.create_index(
        "ix_workflow_executions_tenant_created", "workflow_executions", ["tenant_id", "created_at"]
    )

    op.create_table(
        "integrations",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("provider", sa.String(length=30), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("credentials", JSON, nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_integrations_tenant_id", "integrations", ["tenant_id"])

    op.create_table(
        "meta_ad_accounts",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("integration_id", UUID, nullable=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["integration_id"], ["integrations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "account_id", name="uq_meta_ad_accounts_tenant_account"),
    )
    op.create_index("ix_meta_ad_accounts_tenant_id", "meta_ad_accounts", ["tenant_id"])

    op.create_table(
        "pos_stores",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("shop_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("api_key", sa.String(length=500), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("team_id", UUID, nullable=True),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "shop_id", name="uq_pos_stores_tenant_shop"),
    )
    op.create_index("ix_pos_stores_tenant_id", "pos_stores", ["tenant_id"])

    op.create_table(
        "pos_orders",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("shop_id", sa.String(length=64), nullable=False),
        sa.Column("pos_order_id", sa.String(length=64), nullable=False),
        sa.Column("inserted_at", sa.DateTime(), nullable=True),
        sa.Column("date_local", sa.String(length=10), nullable=True),
        sa.Column("status", sa.Integer(), nullable=True),
        sa.Column("status_name", sa.String(length=100), nullable=True),
        sa.Column("cod", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("tracking", sa.String(length=200), nullable=True),
        sa.Column("p_utm_campaign", sa.String(length=255), nullable=True),
        sa.Column("p_utm_content", sa.String(length=255), nullable=True),
        sa.Column("data", JSON, nullable=False),
        sa.Column("content_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "shop_id", "pos_order_id", name="uq_pos_orders_tenant_shop_order"),
    )
    op.create_index("ix_pos_orders_tenant_id", "pos_orders", ["tenant_id"])
    op.create_index("ix_pos_orders_date_local", "pos_orders", ["date_local"])

    op.create_table(
        "meta_ad_insights",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("campaign_id", sa.String(length=64), nullable=True),
        sa.Column("campaign_name", sa.String(length=500), nullable=False),
        sa.Column("adset_id", sa.String(length=64), nullable=True),
        sa.Column("ad_id", sa.String(length=64), nullable=False),
        sa.Column("ad_name", sa.String(length=500), nullable=False),
        sa.Column("insight_date", sa.Date(), nullable=False),
        sa.Column("spend", sa.Numeric(12, 2), nullable=False),
        sa.Column("clicks", sa.Integer(), nullable=False),
        sa.Column("link_clicks", sa.Integer(), nullable=False),
        sa.Column("impressions", sa.Integer(), nullable=False),
        sa.Column("leads", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "account_id", "ad_id", "insight_date", name="uq_meta_ad_insights_ad_day"
        ),
    )
    op.create_index("ix_meta_ad_insights_tenant_id", "meta_ad_insights", ["tenant_id"])

    op.create_table(
        "webhook_configs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("api_key_hash", sa.String(length=64), nullable=True),
        sa.Column("api_key_last4", sa.String(length=4), nullable=True),
        sa.Column("rotated_at", sa.DateTime(), nullable=True),
        sa.Column("rotated_by", UUID, nullable=True),
        sa.Column("header_key", sa.String(length=100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("relay_enabled", sa.Boolean(), nullable=False),
        sa.Column("relay_webhook_url", sa.String(length=2000), nullable=True),
        sa.Column("relay_header_key", sa.String(length=100), nullable=True),
        sa.Column("relay_api_key", sa.String(length=500), nullable=True),
        sa.Column("relay_updated_at", sa.DateTime(), nullable=True),
        sa.Column("relay_updated_by", UUID, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id"),
    )

    op.create_table(
        "webhook_logs",
        sa.Column("id", UUID, nullable=False),
        sa.Column("tenant_id", UUID, nullable=True),
        sa.Column("request_tenant_id", sa.String(length=100), nullable=True),
        sa.Column("request_id", sa.String(length=255), nullable=False),
        sa.Column("source", sa.String(length=30), nullable=False),
        sa.Column("receive_http_status", sa.Integer(), nullable=False),
        sa.Column("receive_status", sa.String(length=20), nullable=False),
        sa.Column("process_status", sa.String(length=20), nullable=True),
        sa.Column("relay_status", sa.String(length=20), nullable=True),
        sa.Column("payload_hash", sa.String(length=64), nullable=True),
        sa.Column("payload_bytes", sa.Integer(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("content_type", sa.String(length=255), nullable=True),
        sa.Column("order_count", sa.Integer(), nullable=False),
        sa.Column("upserted_count", sa.Integer(), nullable=False),
        sa.Column("warning_count", sa.Integer(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("queue_job_id", sa.String(length=255), nullable=True),
        sa.Column("error_code", sa.String(length=50), nullable=True),
        sa.Column("error_message", sa.String(length=2000), nullable=True),
        sa.Column("headers_snapshot", JSON, nullable=True),
        sa.Column("receive_duration_ms", sa.Integer(), nullable=True),
        sa.Column("processing_duration_ms", sa.Integer(), nullable=True),
        sa.Column("total_duration_ms", sa.Integer(), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=False),
        sa.Column("processing_started_at", sa.DateTime(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_logs_tenant_received", "webhook_logs", ["tenant_id", "received_at"])
    op.create_index(
        "ix_webhook_logs_request_hash", "webhook_logs", ["tenant_id", "request_id", "payload_hash"]
    )

    op.create_table(
        "webhook_log_orders",
        sa.Column("id", UUID, nullable=False),
        sa.Column("log_id", UUID, nullable=False),
        sa.Column("shop_id", sa.String(length=64), nullable=True),
        sa.Column("order_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.Integer(), nullable=True),
        sa.Column("upsert_status", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("warning", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["log_id"], ["webhook_logs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_log_orders_log_id", "webhook_log_orders", ["log_id"])
    op.create_index("ix_webhook_log_orders_shop_order", "webhook_log_orders", ["shop_id", "order_id"])


def downgrade() -> None:
    op.drop_table("webhook_log_orders")
    op.drop_table("webhook_logs")
    op.drop_table("webhook_configs")
    op.drop_table("meta_ad_insights")
    op.drop_table("pos_orders")
    op.drop_table("pos_stores")
    op.drop_table("meta_ad_accounts")
    op.drop_table("integrations")
    op.drop_table("workflow_executions")
    op.drop_table("workflows")
