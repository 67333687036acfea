"""Fixtures running every repository contract test against each backend."""

from __future__ import annotations

import pytest
import pytest_asyncio

from controlplane_store.core.config import StoreDefaults
from controlplane_store.repos import RepoBundle, build_memory_repos, build_sql_repos
from controlplane_store.repos.models import Base
from controlplane_store.repos.sql import SqlStore
from test.settings import test_settings

BACKENDS = ["memory", "sqlite"]
if test_settings.database.enable_postgres_tests:
    BACKENDS.append("postgresql")


async def _reset_postgres(store: SqlStore) -> None:
    async with store.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(params=BACKENDS)
async def repos(request, tmp_path, store_defaults: StoreDefaults) -> RepoBundle:
    """A fresh bundle of repositories for the parametrized backend."""
    backend = request.param
    if backend == "memory":
        yield build_memory_repos(store_defaults)
        return

    if backend == "sqlite":
        store = SqlStore(f"sqlite+aiosqlite:///{tmp_path / 'contract.sqlite'}", defaults=store_defaults)
    else:
        store = SqlStore(test_settings.database.postgres_url, defaults=store_defaults)
        await _reset_postgres(store)

    bundle = build_sql_repos(store=store)
    try:
        yield bundle
    finally:
        if backend == "postgresql":
            await _reset_postgres(store)
        await bundle.close()


@pytest.fixture
def tenant_id() -> str:
    return test_settings.tenant_id


@pytest.fixture
def workspace_id() -> str:
    return test_settings.workspace_id
