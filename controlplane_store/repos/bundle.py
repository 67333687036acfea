"""Repository bundles for wiring the gateway to one backend.

``build_repos`` picks the backend from ``Settings.backend`` so callers switch
between the in-memory and SQL stores by configuration only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.config import Settings, StoreDefaults, settings as default_settings
from ..core.logging_config import get_logger
from .interfaces import (
    AgentRepository,
    AuditRepository,
    BudgetRepository,
    ExecutionTargetRepository,
    ModelSecretRepository,
)
from .memory import (
    InMemoryAgentRepository,
    InMemoryAuditRepository,
    InMemoryBudgetRepository,
    InMemoryExecutionTargetRepository,
    InMemoryModelSecretRepository,
)
from .sql import (
    SqlAgentRepository,
    SqlAuditRepository,
    SqlBudgetRepository,
    SqlExecutionTargetRepository,
    SqlModelSecretRepository,
    SqlStore,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class RepoBundle:
    """Convenience container grouping one repository of each kind.

    ``store`` is set for SQL bundles so callers can dispose the engine.
    """

    agents: AgentRepository
    targets: ExecutionTargetRepository
    budgets: BudgetRepository
    audit: AuditRepository
    secrets: ModelSecretRepository
    store: Optional[SqlStore] = None

    async def close(self) -> None:
        """Release backend resources (no-op for the in-memory backend)."""
        if self.store is not None:
            await self.store.dispose()


def build_memory_repos(defaults: Optional[StoreDefaults] = None) -> RepoBundle:
    """Build a bundle of fresh in-memory repositories."""
    defaults = defaults or default_settings.defaults
    return RepoBundle(
        agents=InMemoryAgentRepository(defaults=defaults),
        targets=InMemoryExecutionTargetRepository(defaults=defaults),
        budgets=InMemoryBudgetRepository(defaults=defaults),
        audit=InMemoryAuditRepository(defaults=defaults),
        secrets=InMemoryModelSecretRepository(defaults=defaults),
    )


def build_sql_repos(*, store: SqlStore) -> RepoBundle:
    """Build a bundle of SQL repositories sharing ``store``."""
    return RepoBundle(
        agents=SqlAgentRepository(store=store),
        targets=SqlExecutionTargetRepository(store=store),
        budgets=SqlBudgetRepository(store=store),
        audit=SqlAuditRepository(store=store),
        secrets=SqlModelSecretRepository(store=store),
        store=store,
    )


def build_repos(config: Optional[Settings] = None) -> RepoBundle:
    """Build the bundle selected by ``config.backend``."""
    config = config or default_settings
    if config.backend == "memory":
        logger.info("Using in-memory control-plane repositories")
        return build_memory_repos(config.defaults)
    logger.info("Using SQL control-plane repositories")
    return build_sql_repos(store=SqlStore.from_settings(config))
