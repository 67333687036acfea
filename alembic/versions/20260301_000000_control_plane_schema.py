"""Control-plane store schema and bootstrap execution target

Revision ID: 20260301_000000
Revises: None
Create Date: 2026-03-01 00:00:00.000000

Creates the tables the SQL repositories otherwise create lazily on first use:
- agent_definitions, execution_targets
- budget_policies, budget_usage_daily
- audit_logs, model_secrets
and seeds the default local-host execution target.

Revision format: YYYYMMDD_HHMMSS_description

"""

from datetime import datetime, timezone
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20260301_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DEFAULT_TENANT_ID = "t_default"
DEFAULT_WORKSPACE_ID = "w_default"
DEFAULT_TARGET_ID = "target_local_default"


def upgrade() -> None:
    """Create all tables and seed the bootstrap execution target."""

    op.create_table(
        "agent_definitions",
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("agent_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(80), nullable=False),
        sa.Column("runtime_mode", sa.String(16), nullable=False),
        sa.Column("execution_target_id", sa.String(), nullable=True),
        sa.Column("policy_scope_key", sa.String(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("config_json", sa.Text(), nullable=False),
        sa.Column("version", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "workspace_id", "agent_id"),
    )
    op.create_index("idx_agent_definitions_updated", "agent_definitions", ["tenant_id", "workspace_id", "updated_at"])

    execution_targets = op.create_table(
        "execution_targets",
        sa.Column("target_id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=True),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=True),
        sa.Column("auth_token", sa.Text(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("config_json", sa.Text(), nullable=False),
        sa.Column("version", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("target_id"),
    )
    op.create_index(
        "idx_execution_targets_scope",
        "execution_targets",
        ["tenant_id", "workspace_id", "is_default", "enabled"],
    )

    op.create_table(
        "budget_policies",
        sa.Column("scope_key", sa.String(), nullable=False),
        sa.Column("token_daily_limit", sa.Float(), nullable=True),
        sa.Column("cost_monthly_usd_limit", sa.Float(), nullable=True),
        sa.Column("hard_limit", sa.Boolean(), nullable=False),
        sa.Column("version", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("scope_key"),
    )

    op.create_table(
        "budget_usage_daily",
        sa.Column("scope_key", sa.String(), nullable=False),
        sa.Column("date_ymd", sa.String(10), nullable=False),
        sa.Column("tokens_used", sa.BigInteger(), nullable=False),
        sa.Column("cost_usd", sa.Float(), nullable=False),
        sa.Column("runs_rejected", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("scope_key", "date_ymd"),
    )
    op.create_index("idx_budget_usage_daily_scope_date", "budget_usage_daily", ["scope_key", "date_ymd"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor", sa.String(), nullable=False),
        sa.Column("resource_type", sa.String(), nullable=True),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("idx_audit_logs_scope", "audit_logs", ["tenant_id", "workspace_id", "id"])
    op.create_index("idx_audit_logs_action", "audit_logs", ["action", "id"])
    op.create_index("idx_audit_logs_created", "audit_logs", ["created_at"])

    op.create_table(
        "model_secrets",
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("workspace_id", sa.String(), nullable=False, server_default=""),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("model_id", sa.String(), nullable=True),
        sa.Column("base_url", sa.Text(), nullable=True),
        sa.Column("api_key", sa.Text(), nullable=False),
        sa.Column("updated_by", sa.String(), nullable=False),
        sa.Column("updated_at", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("tenant_id", "workspace_id", "provider"),
    )
    op.create_index("idx_model_secrets_tenant_provider", "model_secrets", ["tenant_id", "provider"])

    seeded_at = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    op.bulk_insert(
        execution_targets,
        [
            {
                "target_id": DEFAULT_TARGET_ID,
                "tenant_id": DEFAULT_TENANT_ID,
                "workspace_id": DEFAULT_WORKSPACE_ID,
                "kind": "local-host",
                "endpoint": None,
                "auth_token": None,
                "is_default": True,
                "enabled": True,
                "config_json": "{}",
                "version": 1,
                "updated_at": seeded_at,
            }
        ],
    )


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("model_secrets")
    op.drop_table("audit_logs")
    op.drop_table("budget_usage_daily")
    op.drop_table("budget_policies")
    op.drop_table("execution_targets")
    op.drop_table("agent_definitions")
