"""Records persisted and served by the control-plane repositories.

Every record here is the *normalized* form: repositories only ever hand out
instances that went through ``controlplane_store.repos.normalization``. Callers
receive copies, so mutating a returned record never mutates the store.

Timestamps are ISO-8601 UTC strings with millisecond precision and a ``Z``
suffix; lexicographic order equals chronological order, which the audit range
filter and the ``updated_at`` sort rely on.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import BaseSchema
from .enums import ExecutionTargetKind, RuntimeMode


class AgentDefinition(BaseSchema):
    """
    An agent definition, keyed by ``(tenant_id, workspace_id, agent_id)``.

    Created and updated only through upsert; never hard-deleted. Disabling is
    done through ``enabled``.
    """

    tenant_id: str
    workspace_id: str
    agent_id: str

    name: str
    runtime_mode: RuntimeMode = RuntimeMode.local
    execution_target_id: Optional[str] = None
    policy_scope_key: Optional[str] = None

    enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)

    version: int = 1
    updated_at: str


class ExecutionTarget(BaseSchema):
    """
    A place where agent workloads run, keyed globally by ``target_id``.

    Within one ``(tenant_id, workspace_id-or-absent)`` scope at most one target
    carries ``is_default=True``.
    """

    target_id: str
    tenant_id: str
    workspace_id: Optional[str] = None

    kind: ExecutionTargetKind = ExecutionTargetKind.local_host
    endpoint: Optional[str] = None
    auth_token: Optional[str] = Field(default=None, repr=False)

    is_default: bool = False
    enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)

    version: int = 1
    updated_at: str


class BudgetPolicy(BaseSchema):
    """Spending limits for a caller-defined budget scope. ``None`` means unlimited."""

    scope_key: str
    token_daily_limit: Optional[float] = None
    cost_monthly_usd_limit: Optional[float] = None
    hard_limit: bool = True

    version: int = 1
    updated_at: str


class BudgetPolicyPatch(BaseSchema):
    """
    Partial update for a budget policy.

    Only fields that were explicitly set are applied, so ``None`` (unlimited) can
    be told apart from "leave unchanged" through ``model_fields_set``.
    """

    token_daily_limit: Optional[float] = None
    cost_monthly_usd_limit: Optional[float] = None
    hard_limit: Optional[bool] = None


class BudgetUsageDaily(BaseSchema):
    """Daily usage counters for ``(scope_key, date)``; mutated only additively."""

    scope_key: str
    date: str
    tokens_used: int = 0
    cost_usd: float = 0.0
    runs_rejected: int = 0
    updated_at: str


class BudgetUsageSummary(BaseSchema):
    """Daily counters plus the monthly cost rollup for one scope and date."""

    scope_key: str
    date: str
    month: str
    tokens_used_daily: int = 0
    cost_usd_monthly: float = 0.0
    runs_rejected_daily: int = 0


class AuditLogEntry(BaseSchema):
    """An append-only audit event. ``id`` is assigned by the store."""

    id: int
    tenant_id: str
    workspace_id: str
    action: str
    actor: str
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


class AuditQuery(BaseSchema):
    """Filters for ``AuditRepository.query``; ``from``/``to`` bound ``created_at`` inclusively."""

    tenant_id: Optional[str] = None
    workspace_id: Optional[str] = None
    action: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    limit: Optional[int] = None
    cursor: Optional[int] = None


class AuditQueryResult(BaseSchema):
    """A page of audit entries, newest first.

    ``next_cursor`` is set only when the page came back full.
    """

    items: List[AuditLogEntry] = Field(default_factory=list)
    next_cursor: Optional[int] = None


class ModelSecret(BaseSchema):
    """
    A model API credential, keyed by ``(tenant_id, workspace_id-or-absent, provider)``.

    Only handed out by ``ModelSecretRepository.get_for_run``; every other read
    path returns ``ModelSecretMeta``.
    """

    tenant_id: str
    workspace_id: Optional[str] = None
    provider: str
    model_id: Optional[str] = None
    base_url: Optional[str] = None
    api_key: str = Field(repr=False)
    updated_by: str = "system"
    updated_at: str


class ModelSecretMeta(BaseSchema):
    """Display-safe projection of ``ModelSecret``; never carries the raw key."""

    tenant_id: str
    workspace_id: Optional[str] = None
    provider: str
    model_id: Optional[str] = None
    base_url: Optional[str] = None
    masked_key: str
    key_last4: str
    updated_by: str
    updated_at: str
