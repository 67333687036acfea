"""Conversions between normalized records and ORM rows.

Records are always normalized before they reach ``*_to_row``/``apply_*``;
``*_from_row`` rebuilds records from stored columns and parses serialized maps,
degrading malformed JSON to ``{}``.
"""

from __future__ import annotations

from ...models.domain import (
    AgentDefinition,
    AuditLogEntry,
    BudgetPolicy,
    ExecutionTarget,
    ModelSecret,
)
from ...models.enums import ExecutionTargetKind, RuntimeMode
from .. import normalization as norm
from ..models import (
    AgentDefinitionRow,
    AuditLogRow,
    BudgetPolicyRow,
    ExecutionTargetRow,
    ModelSecretRow,
)


def apply_agent(row: AgentDefinitionRow, agent: AgentDefinition) -> AgentDefinitionRow:
    row.name = agent.name
    row.runtime_mode = agent.runtime_mode.value
    row.execution_target_id = agent.execution_target_id
    row.policy_scope_key = agent.policy_scope_key
    row.enabled = agent.enabled
    row.config_json = norm.dump_json_object(agent.config)
    row.version = agent.version
    row.updated_at = agent.updated_at
    return row


def agent_to_row(agent: AgentDefinition) -> AgentDefinitionRow:
    row = AgentDefinitionRow(tenant_id=agent.tenant_id, workspace_id=agent.workspace_id, agent_id=agent.agent_id)
    return apply_agent(row, agent)


def agent_from_row(row: AgentDefinitionRow) -> AgentDefinition:
    return AgentDefinition(
        tenant_id=row.tenant_id,
        workspace_id=row.workspace_id,
        agent_id=row.agent_id,
        name=row.name,
        runtime_mode=RuntimeMode.cloud if row.runtime_mode == RuntimeMode.cloud.value else RuntimeMode.local,
        execution_target_id=row.execution_target_id,
        policy_scope_key=row.policy_scope_key,
        enabled=bool(row.enabled),
        config=norm.parse_json_object(row.config_json, source=f"agent_definitions.config_json[{row.agent_id}]"),
        version=row.version,
        updated_at=row.updated_at,
    )


def apply_target(row: ExecutionTargetRow, target: ExecutionTarget) -> ExecutionTargetRow:
    row.tenant_id = target.tenant_id
    row.workspace_id = target.workspace_id
    row.kind = target.kind.value
    row.endpoint = target.endpoint
    row.auth_token = target.auth_token
    row.is_default = target.is_default
    row.enabled = target.enabled
    row.config_json = norm.dump_json_object(target.config)
    row.version = target.version
    row.updated_at = target.updated_at
    return row


def target_to_row(target: ExecutionTarget) -> ExecutionTargetRow:
    return apply_target(ExecutionTargetRow(target_id=target.target_id), target)


def target_from_row(row: ExecutionTargetRow) -> ExecutionTarget:
    return ExecutionTarget(
        target_id=row.target_id,
        tenant_id=row.tenant_id,
        workspace_id=row.workspace_id or None,
        kind=(
            ExecutionTargetKind.docker_runner
            if row.kind == ExecutionTargetKind.docker_runner.value
            else ExecutionTargetKind.local_host
        ),
        endpoint=row.endpoint,
        auth_token=row.auth_token,
        is_default=bool(row.is_default),
        enabled=bool(row.enabled),
        config=norm.parse_json_object(row.config_json, source=f"execution_targets.config_json[{row.target_id}]"),
        version=row.version,
        updated_at=row.updated_at,
    )


def apply_budget_policy(row: BudgetPolicyRow, policy: BudgetPolicy) -> BudgetPolicyRow:
    row.token_daily_limit = policy.token_daily_limit
    row.cost_monthly_usd_limit = policy.cost_monthly_usd_limit
    row.hard_limit = policy.hard_limit
    row.version = policy.version
    row.updated_at = policy.updated_at
    return row


def budget_policy_to_row(policy: BudgetPolicy) -> BudgetPolicyRow:
    return apply_budget_policy(BudgetPolicyRow(scope_key=policy.scope_key), policy)


def budget_policy_from_row(row: BudgetPolicyRow) -> BudgetPolicy:
    return BudgetPolicy(
        scope_key=row.scope_key,
        token_daily_limit=norm.normalize_nullable_limit(row.token_daily_limit),
        cost_monthly_usd_limit=norm.normalize_nullable_limit(row.cost_monthly_usd_limit),
        hard_limit=row.hard_limit is not False,
        version=row.version,
        updated_at=row.updated_at,
    )


def audit_to_row(entry: AuditLogEntry) -> AuditLogRow:
    """Row for a new entry; the id is left to the database."""
    return AuditLogRow(
        tenant_id=entry.tenant_id,
        workspace_id=entry.workspace_id,
        action=entry.action,
        actor=entry.actor,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        metadata_json=norm.dump_json_object(entry.metadata),
        created_at=entry.created_at,
    )


def audit_from_row(row: AuditLogRow) -> AuditLogEntry:
    return AuditLogEntry(
        id=row.id,
        tenant_id=row.tenant_id,
        workspace_id=row.workspace_id,
        action=row.action,
        actor=row.actor,
        resource_type=row.resource_type,
        resource_id=row.resource_id,
        metadata=norm.parse_json_object(row.metadata_json, source=f"audit_logs.metadata_json[{row.id}]"),
        created_at=row.created_at,
    )


def apply_model_secret(row: ModelSecretRow, secret: ModelSecret) -> ModelSecretRow:
    row.model_id = secret.model_id
    row.base_url = secret.base_url
    row.api_key = secret.api_key
    row.updated_by = secret.updated_by
    row.updated_at = secret.updated_at
    return row


def model_secret_to_row(secret: ModelSecret) -> ModelSecretRow:
    row = ModelSecretRow(tenant_id=secret.tenant_id, workspace_id=secret.workspace_id or "", provider=secret.provider)
    return apply_model_secret(row, secret)


def model_secret_from_row(row: ModelSecretRow) -> ModelSecret:
    return ModelSecret(
        tenant_id=row.tenant_id,
        workspace_id=row.workspace_id or None,
        provider=row.provider,
        model_id=row.model_id,
        base_url=row.base_url,
        api_key=row.api_key,
        updated_by=row.updated_by,
        updated_at=row.updated_at,
    )
