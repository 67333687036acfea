"""Repository interfaces and implementations for the control-plane store.

The repository layer is the persistence boundary the gateway calls into.

Responsibilities
----------------

- Provide async repository interfaces (Protocols) for:

  - agent definitions,
  - execution targets and default-target resolution,
  - budget policies and the daily usage ledger,
  - the append-only audit log,
  - model API secrets and their masked projections.

- Normalize every write through one shared kernel so both backends persist
  identical records.

Design notes
------------

Every interface has two implementations behind the same contract:

- in-memory repositories (``repos.memory``) for tests and ephemeral use,
- async SQLAlchemy repositories (``repos.sql``) for durable storage.

The SQL implementation commits at repository-method boundaries, so each write
(including a target upsert with its default demotion) is atomic.
"""

from .bundle import RepoBundle, build_memory_repos, build_repos, build_sql_repos
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

__all__ = [
    "AgentRepository",
    "ExecutionTargetRepository",
    "BudgetRepository",
    "AuditRepository",
    "ModelSecretRepository",
    "InMemoryAgentRepository",
    "InMemoryExecutionTargetRepository",
    "InMemoryBudgetRepository",
    "InMemoryAuditRepository",
    "InMemoryModelSecretRepository",
    "RepoBundle",
    "build_memory_repos",
    "build_sql_repos",
    "build_repos",
]
