"""Repository interface contracts.

The gateway depends on these Protocols instead of concrete persistence
implementations, so it can switch between the in-memory and SQL backends by
configuration only.

Contract guidelines
-------------------

- All methods are async.
- Write inputs may be pydantic models or plain mappings (snake_case or
  camelCase keys). Inputs are normalized, never rejected.
- Lookups return ``None`` for "not found"; they never raise for absence.
- Returned records are copies; mutating them never mutates the store.
- Both backends must produce identical results for identical call sequences.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Union

from pydantic import BaseModel

from ..models.domain import (
    AgentDefinition,
    AuditLogEntry,
    AuditQueryResult,
    BudgetPolicy,
    BudgetUsageSummary,
    ExecutionTarget,
    ModelSecret,
    ModelSecretMeta,
)

RecordInput = Union[BaseModel, Mapping[str, Any]]


class AgentRepository(Protocol):
    """Persist agent definitions keyed by ``(tenant_id, workspace_id, agent_id)``."""

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[AgentDefinition]:
        """
        List agent definitions, newest ``updated_at`` first.

        Args:
            tenant_id: Optional tenant filter; blank values are ignored.
            workspace_id: Optional workspace filter; blank values are ignored.

        Returns:
            The matching agent definitions.
        """
        ...

    async def get(self, tenant_id: str, workspace_id: str, agent_id: str) -> Optional[AgentDefinition]:
        """
        Retrieve one agent definition by its composite key.

        Returns:
            The definition if found, else None.
        """
        ...

    async def upsert(self, record: RecordInput) -> AgentDefinition:
        """
        Create or replace an agent definition.

        The first write stores ``max(1, floor(version))`` (1 when omitted); every
        later write to the same key stores the current version plus one.

        Args:
            record: The agent definition to write.

        Returns:
            The stored, normalized definition.
        """
        ...


class ExecutionTargetRepository(Protocol):
    """Persist execution targets and resolve the default target of a scope."""

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[ExecutionTarget]:
        """
        List execution targets, newest ``updated_at`` first.

        Args:
            tenant_id: Optional tenant filter; blank values are ignored.
            workspace_id: Optional exact workspace filter. Tenant-wide targets
                compare equal to ``""``.
        """
        ...

    async def get(self, target_id: str) -> Optional[ExecutionTarget]:
        """Retrieve one execution target by id, or None."""
        ...

    async def find_default(self, tenant_id: str, workspace_id: Optional[str] = None) -> Optional[ExecutionTarget]:
        """
        Resolve the default target for a scope.

        Looks for an enabled default in exactly ``workspace_id`` first, then for
        an enabled tenant-wide default.

        Returns:
            The resolved target, or None when neither level has one.
        """
        ...

    async def upsert(self, record: RecordInput) -> ExecutionTarget:
        """
        Create or replace an execution target.

        Writing a target with ``is_default=True`` demotes the other defaults of
        the same ``(tenant_id, workspace_id-or-absent)`` scope in the same write.
        Demoted targets get a fresh ``updated_at`` but keep their version.

        Args:
            record: The execution target to write.

        Returns:
            The stored, normalized target.
        """
        ...


class BudgetRepository(Protocol):
    """Budget policies plus the additive daily usage ledger."""

    async def get(self, scope_key: Optional[str] = None) -> BudgetPolicy:
        """
        Return the policy of a scope, creating an unlimited one on first read.

        Args:
            scope_key: Budget scope; the default workspace scope when omitted.
        """
        ...

    async def update(self, patch: RecordInput, scope_key: Optional[str] = None) -> BudgetPolicy:
        """
        Apply the fields present in ``patch`` and bump the policy version.

        Args:
            patch: A ``BudgetPolicyPatch`` or mapping holding only the fields to change.
            scope_key: Budget scope; the default workspace scope when omitted.

        Returns:
            The updated policy.
        """
        ...

    async def add_usage(
        self,
        scope_key: str,
        *,
        date: Optional[str] = None,
        tokens_used: Any = None,
        cost_usd: Any = None,
        runs_rejected: Any = None,
        updated_at: Optional[str] = None,
    ) -> None:
        """
        Add usage to the ``(scope_key, date)`` ledger row.

        Increments are clamped to non-negative values; ``date`` defaults to the
        current UTC date.
        """
        ...

    async def summary(self, scope_key: str, date: Optional[str] = None) -> BudgetUsageSummary:
        """
        Summarize usage for one day and its calendar month.

        Returns:
            Daily tokens and rejected runs for ``date``, plus the cost summed over
            every row of the same month.
        """
        ...


class AuditRepository(Protocol):
    """Append-only audit log with reverse-chronological cursor pagination."""

    async def append(self, entry: RecordInput) -> AuditLogEntry:
        """
        Append an audit entry; the store assigns the next id.

        Returns:
            The stored entry including its id.
        """
        ...

    async def query(self, params: Optional[RecordInput] = None) -> AuditQueryResult:
        """
        Query audit entries, highest id first.

        Args:
            params: An ``AuditQuery`` or mapping with optional ``tenant_id``,
                ``workspace_id``, ``action``, ``from``, ``to``, ``limit`` and ``cursor``.

        Returns:
            One page of entries; ``next_cursor`` is set when the page is full.
        """
        ...


class ModelSecretRepository(Protocol):
    """Model API credentials with scope-aware resolution and masked listing."""

    async def upsert(self, record: RecordInput) -> ModelSecret:
        """
        Create or overwrite the secret of ``(tenant_id, workspace_id-or-absent, provider)``.

        Returns:
            The stored secret.
        """
        ...

    async def get_for_run(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> Optional[ModelSecret]:
        """
        Resolve the credential used for an actual model call.

        With a provider: the exact workspace secret, else the tenant-wide one,
        else None. Without a provider: the best-ranked secret of the tenant
        (exact workspace, tenant-wide, other workspace; then provider name).
        """
        ...

    async def list_meta(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> list[ModelSecretMeta]:
        """
        List masked projections of a tenant's secrets, sorted by provider.

        Args:
            tenant_id: Tenant to list.
            workspace_id: Optional exact workspace filter.
            provider: Optional provider filter (case-insensitive).
        """
        ...
