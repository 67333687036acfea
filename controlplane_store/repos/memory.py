"""In-memory repository implementations.

Process-local, keyed-container versions of every repository Protocol. They are
used by tests and ephemeral deployments and follow the same normalization and
ordering rules as the SQL backend in ``controlplane_store.repos.sql``.

State lives on the instance: two repositories never share data, and the audit
id counter is owned by its repository.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.config import StoreDefaults, settings
from ..core.logging_config import get_logger
from ..models.domain import (
    AgentDefinition,
    AuditLogEntry,
    AuditQueryResult,
    BudgetPolicy,
    BudgetUsageDaily,
    BudgetUsageSummary,
    ExecutionTarget,
    ModelSecret,
    ModelSecretMeta,
)
from . import normalization as norm
from .interfaces import (
    AgentRepository,
    AuditRepository,
    BudgetRepository,
    ExecutionTargetRepository,
    ModelSecretRepository,
    RecordInput,
)

logger = get_logger(__name__)


class InMemoryAgentRepository(AgentRepository):
    """In-memory implementation of ``AgentRepository``."""

    def __init__(self, defaults: Optional[StoreDefaults] = None) -> None:
        self.defaults = defaults or settings.defaults
        self._items: Dict[Tuple[str, str, str], AgentDefinition] = {}

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[AgentDefinition]:
        items = [
            item
            for item in self._items.values()
            if (not tenant_id or item.tenant_id == tenant_id)
            and (not workspace_id or item.workspace_id == workspace_id)
        ]
        items.sort(key=lambda item: (item.tenant_id, item.workspace_id, item.agent_id))
        items.sort(key=lambda item: item.updated_at, reverse=True)
        return [item.model_copy(deep=True) for item in items]

    async def get(self, tenant_id: str, workspace_id: str, agent_id: str) -> Optional[AgentDefinition]:
        ids = {"tenant_id": tenant_id, "workspace_id": workspace_id, "agent_id": agent_id}
        key = norm.agent_key(ids, self.defaults)
        item = self._items.get(key)
        return item.model_copy(deep=True) if item else None

    async def upsert(self, record: RecordInput) -> AgentDefinition:
        data = norm.as_mapping(record)
        key = norm.agent_key(data, self.defaults)
        current = self._items.get(key)
        version = current.version + 1 if current else norm.first_version(norm.field(data, "version"))
        item = norm.normalize_agent(data, version=version, defaults=self.defaults)
        self._items[key] = item
        logger.debug(f"Upserted agent {key} at version {version}")
        return item.model_copy(deep=True)


class InMemoryExecutionTargetRepository(ExecutionTargetRepository):
    """In-memory implementation of ``ExecutionTargetRepository``.

    Without an explicit ``seed`` the store starts with the bootstrap local-host
    default target of the configured default tenant and workspace.
    """

    def __init__(
        self, seed: Optional[Iterable[RecordInput]] = None, defaults: Optional[StoreDefaults] = None
    ) -> None:
        self.defaults = defaults or settings.defaults
        self._items: Dict[str, ExecutionTarget] = {}
        if seed is None:
            initial: List[ExecutionTarget] = [norm.bootstrap_target(self.defaults)]
        else:
            initial = [
                norm.normalize_target(
                    item,
                    version=norm.first_version(norm.field(norm.as_mapping(item), "version")),
                    defaults=self.defaults,
                )
                for item in seed
            ]
        for item in initial:
            self._items[item.target_id] = item

    def _sorted(self, items: Iterable[ExecutionTarget]) -> list[ExecutionTarget]:
        ordered = sorted(items, key=lambda item: item.target_id)
        ordered.sort(key=lambda item: item.updated_at, reverse=True)
        return ordered

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[ExecutionTarget]:
        items = [
            item
            for item in self._items.values()
            if (not tenant_id or item.tenant_id == tenant_id)
            and (workspace_id is None or (item.workspace_id or "") == workspace_id)
        ]
        return [item.model_copy(deep=True) for item in self._sorted(items)]

    async def get(self, target_id: str) -> Optional[ExecutionTarget]:
        item = self._items.get(norm.sanitize_id(target_id, ""))
        return item.model_copy(deep=True) if item else None

    async def find_default(self, tenant_id: str, workspace_id: Optional[str] = None) -> Optional[ExecutionTarget]:
        tenant = norm.sanitize_id(tenant_id, self.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        candidates = self._sorted(
            item for item in self._items.values() if item.tenant_id == tenant and item.enabled and item.is_default
        )
        for item in candidates:
            if item.workspace_id == workspace:
                return item.model_copy(deep=True)
        for item in candidates:
            if not item.workspace_id:
                return item.model_copy(deep=True)
        return None

    async def upsert(self, record: RecordInput) -> ExecutionTarget:
        data = norm.as_mapping(record)
        target_id = norm.target_id_of(data) or norm.generated_target_id()
        current = self._items.get(target_id)
        version = current.version + 1 if current else norm.first_version(norm.field(data, "version"))
        item = norm.normalize_target(data, version=version, defaults=self.defaults, target_id=target_id)

        if item.is_default:
            demoted_at = norm.now_iso()
            for sibling_id, sibling in self._items.items():
                if sibling_id == item.target_id or not sibling.is_default:
                    continue
                if not norm.same_target_scope(sibling, item.tenant_id, item.workspace_id):
                    continue
                self._items[sibling_id] = sibling.model_copy(update={"is_default": False, "updated_at": demoted_at})
                logger.debug(f"Demoted default target {sibling_id} in favor of {item.target_id}")

        self._items[item.target_id] = item
        logger.debug(f"Upserted execution target {item.target_id} at version {version}")
        return item.model_copy(deep=True)


class InMemoryBudgetRepository(BudgetRepository):
    """In-memory implementation of ``BudgetRepository``."""

    def __init__(self, defaults: Optional[StoreDefaults] = None) -> None:
        self.defaults = defaults or settings.defaults
        self._policies: Dict[str, BudgetPolicy] = {}
        self._usage: Dict[Tuple[str, str], BudgetUsageDaily] = {}

    async def get(self, scope_key: Optional[str] = None) -> BudgetPolicy:
        key = norm.budget_scope_key(scope_key, self.defaults)
        policy = self._policies.get(key)
        if policy is None:
            policy = norm.new_budget_policy(key)
            self._policies[key] = policy
            logger.debug(f"Created budget policy for scope {key}")
        return policy.model_copy()

    async def update(self, patch: RecordInput, scope_key: Optional[str] = None) -> BudgetPolicy:
        current = await self.get(scope_key)
        policy = norm.apply_budget_patch(current, patch)
        self._policies[policy.scope_key] = policy
        logger.debug(f"Updated budget policy {policy.scope_key} to version {policy.version}")
        return policy.model_copy()

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
        key = norm.budget_scope_key(scope_key, self.defaults)
        day = norm.normalize_date(date) or norm.today_ymd()
        current = self._usage.get((key, day))
        self._usage[(key, day)] = BudgetUsageDaily(
            scope_key=key,
            date=day,
            tokens_used=(current.tokens_used if current else 0) + norm.normalize_int(tokens_used),
            cost_usd=norm.round6((current.cost_usd if current else 0.0) + norm.normalize_cost(cost_usd)),
            runs_rejected=(current.runs_rejected if current else 0) + norm.normalize_int(runs_rejected),
            updated_at=norm.sanitize_id(updated_at, "") or norm.now_iso(),
        )
        logger.debug(f"Recorded usage for scope {key} on {day}")

    async def summary(self, scope_key: str, date: Optional[str] = None) -> BudgetUsageSummary:
        key = norm.budget_scope_key(scope_key, self.defaults)
        day = norm.normalize_date(date) or norm.today_ymd()
        month = day[:7]
        daily = self._usage.get((key, day))
        monthly_cost = sum(
            row.cost_usd
            for (row_scope, row_date), row in self._usage.items()
            if row_scope == key and row_date.startswith(month)
        )
        return BudgetUsageSummary(
            scope_key=key,
            date=day,
            month=month,
            tokens_used_daily=daily.tokens_used if daily else 0,
            cost_usd_monthly=norm.round6(monthly_cost),
            runs_rejected_daily=daily.runs_rejected if daily else 0,
        )


class InMemoryAuditRepository(AuditRepository):
    """In-memory implementation of ``AuditRepository`` (append-only).

    Ids come from a counter owned by the repository, so they are strictly
    increasing for the lifetime of the instance and never shared between
    instances.
    """

    def __init__(self, defaults: Optional[StoreDefaults] = None) -> None:
        self.defaults = defaults or settings.defaults
        self._items: List[AuditLogEntry] = []
        self._ids = itertools.count(1)

    async def append(self, entry: RecordInput) -> AuditLogEntry:
        item = norm.normalize_audit_entry(entry, entry_id=next(self._ids), defaults=self.defaults)
        self._items.append(item)
        logger.debug(f"Appended audit entry {item.id} ({item.action})")
        return item.model_copy(deep=True)

    async def query(self, params: Optional[RecordInput] = None) -> AuditQueryResult:
        data = norm.as_mapping(params)
        tenant_id = norm.field(data, "tenant_id")
        workspace_id = norm.field(data, "workspace_id")
        action = norm.field(data, "action")
        from_ = norm.field(data, "from_", "from")
        to = norm.field(data, "to")
        limit = norm.normalize_limit(norm.field(data, "limit"))
        cursor = norm.normalize_cursor(norm.field(data, "cursor"))

        matched = [
            item
            for item in self._items
            if (not tenant_id or item.tenant_id == tenant_id)
            and (not workspace_id or item.workspace_id == workspace_id)
            and (not action or item.action == action)
            and (not from_ or item.created_at >= from_)
            and (not to or item.created_at <= to)
            and (cursor is None or item.id < cursor)
        ]
        matched.sort(key=lambda item: item.id, reverse=True)
        page = matched[:limit]
        return AuditQueryResult(
            items=[item.model_copy(deep=True) for item in page],
            next_cursor=page[-1].id if len(page) == limit else None,
        )


class InMemoryModelSecretRepository(ModelSecretRepository):
    """In-memory implementation of ``ModelSecretRepository``.

    Secrets are keyed by ``(tenant_id, workspace_id or "", provider)``.
    """

    def __init__(self, defaults: Optional[StoreDefaults] = None) -> None:
        self.defaults = defaults or settings.defaults
        self._items: Dict[Tuple[str, str, str], ModelSecret] = {}

    async def upsert(self, record: RecordInput) -> ModelSecret:
        item = norm.normalize_model_secret(record, self.defaults)
        self._items[(item.tenant_id, item.workspace_id or "", item.provider)] = item
        logger.debug(f"Stored model secret for {item.tenant_id}/{item.workspace_id or '*'}/{item.provider}")
        return item.model_copy()

    async def get_for_run(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> Optional[ModelSecret]:
        tenant = norm.sanitize_id(tenant_id, self.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        wanted = norm.optional_provider(provider)

        if wanted:
            if workspace:
                exact = self._items.get((tenant, workspace, wanted))
                if exact:
                    return exact.model_copy()
            tenant_wide = self._items.get((tenant, "", wanted))
            return tenant_wide.model_copy() if tenant_wide else None

        candidates = [item for item in self._items.values() if item.tenant_id == tenant]
        if not candidates:
            return None
        return min(candidates, key=lambda item: norm.secret_rank(item, workspace)).model_copy()

    async def list_meta(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> list[ModelSecretMeta]:
        tenant = norm.sanitize_id(tenant_id, self.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        wanted = norm.optional_provider(provider)
        items = [
            item
            for item in self._items.values()
            if item.tenant_id == tenant
            and (workspace is None or (item.workspace_id or "") == workspace)
            and (not wanted or item.provider == wanted)
        ]
        items.sort(key=lambda item: (item.provider, item.workspace_id or ""))
        return [norm.to_model_secret_meta(item) for item in items]
