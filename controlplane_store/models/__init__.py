"""Pydantic records and enums served by the control-plane repositories."""

from .base import BaseSchema
from .domain import (
    AgentDefinition,
    AuditLogEntry,
    AuditQuery,
    AuditQueryResult,
    BudgetPolicy,
    BudgetPolicyPatch,
    BudgetUsageDaily,
    BudgetUsageSummary,
    ExecutionTarget,
    ModelSecret,
    ModelSecretMeta,
)
from .enums import ExecutionTargetKind, RuntimeMode

__all__ = [
    "AgentDefinition",
    "AuditLogEntry",
    "AuditQuery",
    "AuditQueryResult",
    "BaseSchema",
    "BudgetPolicy",
    "BudgetPolicyPatch",
    "BudgetUsageDaily",
    "BudgetUsageSummary",
    "ExecutionTarget",
    "ExecutionTargetKind",
    "ModelSecret",
    "ModelSecretMeta",
    "RuntimeMode",
]
