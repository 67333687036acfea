"""SQLAlchemy async repository implementations.

This package provides the durable implementation of the repository interfaces
defined in ``controlplane_store.repos.interfaces``. SQLite (through aiosqlite)
is the default store; PostgreSQL (through asyncpg) uses the same code.

Typical wiring:

- Create a ``SqlStore`` with a database URL.
- Build repository instances with ``controlplane_store.repos.bundle.build_sql_repos``
  or construct them directly with the store.
- The schema is created lazily on first use; production deployments can run
  the Alembic migration instead.
"""

from .agents import SqlAgentRepository
from .audit import SqlAuditRepository
from .budgets import SqlBudgetRepository
from .engine import (
    SchemaBootstrap,
    SqlStore,
    create_all,
    create_engine,
    create_sessionmaker,
    normalize_database_url,
)
from .secrets import SqlModelSecretRepository
from .targets import SqlExecutionTargetRepository

__all__ = [
    "SchemaBootstrap",
    "SqlAgentRepository",
    "SqlAuditRepository",
    "SqlBudgetRepository",
    "SqlExecutionTargetRepository",
    "SqlModelSecretRepository",
    "SqlStore",
    "create_all",
    "create_engine",
    "create_sessionmaker",
    "normalize_database_url",
]
