"""Engine, session and schema bootstrap plumbing for the SQL repositories.

Usage
-----

- Create a ``SqlStore`` for a database URL (or ``SqlStore.from_settings()``).
- Pass it to the ``Sql*Repository`` classes or to ``build_sql_repos``.
- Every repository method awaits ``SqlStore.ready()`` through
  ``SqlStore.session()``, so the schema and the bootstrap execution target exist
  before the first statement runs.

Transaction model
-----------------

Each repository method opens one ``AsyncSession`` and commits once. Any
``SQLAlchemyError``, or an ``OverflowError`` raised by the driver while binding
an integer, rolls the session back and is re-raised as ``StorageBackendError``
carrying the operation name and the driver message.
"""

from __future__ import annotations

import asyncio
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ...core.config import Settings, StoreDefaults, settings as default_settings
from ...core.errors import StorageBackendError
from ...core.logging_config import get_logger
from .. import normalization as norm
from ..models import Base, ExecutionTargetRow
from .rows import target_to_row

logger = get_logger(__name__)


def normalize_database_url(db_url: str) -> str:
    """Rewrite ``postgres://``, ``postgresql://`` and other Postgres variants to the asyncpg driver."""
    return re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)


def ensure_sqlite_parent(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine(
    db_url: str,
    *,
    pool_size: Optional[int] = None,
    pool_timeout: Optional[int] = None,
    echo: bool = False,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Postgres URLs are normalized to ``postgresql+asyncpg://``. Pool sizing only
    applies to server databases; SQLite keeps the dialect's default pool.
    """
    url = normalize_database_url(db_url)
    ensure_sqlite_parent(url)
    kwargs = {}
    if make_url(url).get_backend_name() != "sqlite":
        if pool_size is not None:
            kwargs["pool_size"] = pool_size
        if pool_timeout is not None:
            kwargs["pool_timeout"] = pool_timeout
    return create_async_engine(url, pool_pre_ping=True, echo=echo, **kwargs)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables and indexes for the current ORM metadata (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@dataclass
class SchemaBootstrap:
    """Tracks which databases already have their schema and seed data.

    One instance is owned by each ``SqlStore`` unless a shared instance is
    passed in; the lock serializes concurrent first calls.
    """

    initialized: Set[str] = field(default_factory=set)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def ensure(self, key: str, initializer: Callable[[], Awaitable[None]]) -> bool:
        """Run ``initializer`` once per ``key``. Returns True when it ran."""
        if key in self.initialized:
            return False
        async with self.lock:
            if key in self.initialized:
                return False
            await initializer()
            self.initialized.add(key)
            return True


class SqlStore:
    """A relational database shared by the SQL repositories.

    Owns the engine, the session factory and the schema bootstrap state.
    """

    def __init__(
        self,
        database_url: str,
        *,
        defaults: Optional[StoreDefaults] = None,
        bootstrap: Optional[SchemaBootstrap] = None,
        pool_size: Optional[int] = None,
        pool_timeout: Optional[int] = None,
        echo: bool = False,
    ) -> None:
        self.database_url = normalize_database_url(database_url)
        self.defaults = defaults or default_settings.defaults
        self.bootstrap = bootstrap or SchemaBootstrap()
        self.engine = create_engine(self.database_url, pool_size=pool_size, pool_timeout=pool_timeout, echo=echo)
        self.session_factory = create_sessionmaker(self.engine)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **kwargs) -> "SqlStore":
        """Build a store from ``Settings`` (the module-level settings by default)."""
        config = config or default_settings
        database = config.database
        return cls(
            database.url,
            defaults=config.defaults,
            pool_size=database.pool_size,
            pool_timeout=database.pool_timeout,
            echo=database.echo,
            **kwargs,
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def _initialize(self) -> None:
        await create_all(self.engine)
        async with self.session_factory() as s:
            count = await s.scalar(select(func.count()).select_from(ExecutionTargetRow))
            if not count:
                s.add(target_to_row(norm.bootstrap_target(self.defaults)))
                await s.commit()
                logger.info(f"Seeded bootstrap execution target {self.defaults.target_id}")
        logger.info(f"Schema ready for {self.engine.url.render_as_string(hide_password=True)}")

    async def ready(self) -> None:
        """Create the schema and seed data on first use; later calls return immediately."""
        try:
            await self.bootstrap.ensure(self.database_url, self._initialize)
        except SQLAlchemyError as exc:
            logger.error(f"Schema bootstrap failed: {exc}")
            raise StorageBackendError("bootstrap", str(exc)) from exc

    @asynccontextmanager
    async def session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session for one repository operation.

        Args:
            operation: Name reported in ``StorageBackendError`` (e.g. ``"agents.upsert"``).
        """
        await self.ready()
        try:
            async with self.session_factory() as s:
                try:
                    yield s
                except (SQLAlchemyError, OverflowError):
                    await s.rollback()
                    raise
        except (SQLAlchemyError, OverflowError) as exc:
            logger.error(f"Storage operation {operation} failed: {exc}")
            raise StorageBackendError(operation, str(exc)) from exc

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
