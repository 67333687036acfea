"""SQLAlchemy ORM models for the control-plane store.

These ORM models define the SQL schema used by the SQL repository
implementation in ``controlplane_store.repos.sql``.

Design
------

- Composite primary keys mirror the record keys: agents by
  ``(tenant_id, workspace_id, agent_id)``, usage rows by ``(scope_key, date_ymd)``
  and model secrets by ``(tenant_id, workspace_id, provider)``.
- Only ``audit_logs`` has an autoincrementing id; on SQLite it uses
  ``AUTOINCREMENT`` so ids are never reused.
- ``config``/``metadata`` maps are stored as serialized JSON text and parsed back
  on read; malformed text degrades to an empty map.
- Timestamps are stored as ISO-8601 UTC strings, which sort chronologically.
- Tenant-wide model secrets store ``workspace_id = ''`` so the composite key
  also holds for them.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class AgentDefinitionRow(Base):
    """Row model for ``agent_definitions``."""

    __tablename__ = "agent_definitions"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String, primary_key=True)
    agent_id: Mapped[str] = mapped_column(String, primary_key=True)

    name: Mapped[str] = mapped_column(String(80))
    runtime_mode: Mapped[str] = mapped_column(String(16))
    execution_target_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    policy_scope_key: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    config_json: Mapped[str] = mapped_column(Text, default="{}")

    version: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[str] = mapped_column(String(32))

    __table_args__ = (Index("idx_agent_definitions_updated", "tenant_id", "workspace_id", "updated_at"),)


class ExecutionTargetRow(Base):
    """Row model for ``execution_targets``.

    ``target_id`` is globally unique; the scope index backs default resolution.
    """

    __tablename__ = "execution_targets"

    target_id: Mapped[str] = mapped_column(String, primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String)
    workspace_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    kind: Mapped[str] = mapped_column(String(32))
    endpoint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    auth_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    config_json: Mapped[str] = mapped_column(Text, default="{}")

    version: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[str] = mapped_column(String(32))

    __table_args__ = (
        Index("idx_execution_targets_scope", "tenant_id", "workspace_id", "is_default", "enabled"),
    )


class BudgetPolicyRow(Base):
    """Row model for ``budget_policies``. ``NULL`` limits mean unlimited."""

    __tablename__ = "budget_policies"

    scope_key: Mapped[str] = mapped_column(String, primary_key=True)
    token_daily_limit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cost_monthly_usd_limit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hard_limit: Mapped[bool] = mapped_column(Boolean, default=True)

    version: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[str] = mapped_column(String(32))


class BudgetUsageDailyRow(Base):
    """Row model for ``budget_usage_daily``; counters only ever grow."""

    __tablename__ = "budget_usage_daily"

    scope_key: Mapped[str] = mapped_column(String, primary_key=True)
    date_ymd: Mapped[str] = mapped_column(String(10), primary_key=True)

    tokens_used: Mapped[int] = mapped_column(BigInteger, default=0)
    cost_usd: Mapped[float] = mapped_column(Float, default=0.0)
    runs_rejected: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[str] = mapped_column(String(32))

    __table_args__ = (Index("idx_budget_usage_daily_scope_date", "scope_key", "date_ymd"),)


class AuditLogRow(Base):
    """Row model for ``audit_logs`` (append-only)."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String)
    workspace_id: Mapped[str] = mapped_column(String)
    action: Mapped[str] = mapped_column(String)
    actor: Mapped[str] = mapped_column(String)
    resource_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[str] = mapped_column(String(32))

    __table_args__ = (
        Index("idx_audit_logs_scope", "tenant_id", "workspace_id", "id"),
        Index("idx_audit_logs_action", "action", "id"),
        Index("idx_audit_logs_created", "created_at"),
        {"sqlite_autoincrement": True},
    )


class ModelSecretRow(Base):
    """Row model for ``model_secrets``."""

    __tablename__ = "model_secrets"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String, primary_key=True, default="")
    provider: Mapped[str] = mapped_column(String, primary_key=True)

    model_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    base_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key: Mapped[str] = mapped_column(Text)
    updated_by: Mapped[str] = mapped_column(String)
    updated_at: Mapped[str] = mapped_column(String(32))

    __table_args__ = (Index("idx_model_secrets_tenant_provider", "tenant_id", "provider"),)
