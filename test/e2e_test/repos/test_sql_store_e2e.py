"""End-to-end tests for the SQL backend against a file-backed SQLite database.

Tests verify that:
1. The schema and the bootstrap target are created once and survive restarts
2. Malformed JSON columns degrade to empty maps instead of failing reads
3. Driver failures surface as StorageBackendError
4. A target upsert and its default demotion commit or roll back together
"""

import logging

import pytest
import pytest_asyncio
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from controlplane_store.core.config import Settings, StoreDefaults
from controlplane_store.core.errors import StorageBackendError
from controlplane_store.repos import build_repos, build_sql_repos
from controlplane_store.repos.sql import SqlStore


@pytest_asyncio.fixture
async def store(sqlite_url, store_defaults):
    store = SqlStore(sqlite_url, defaults=store_defaults)
    yield store
    await store.dispose()


@pytest_asyncio.fixture
async def repos(store):
    return build_sql_repos(store=store)


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_schema_created_lazily_with_seed(self, store, repos):
        targets = await repos.targets.list()
        assert [t.target_id for t in targets] == ["target_local_default"]

        async with store.engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: set(sync_conn.dialect.get_table_names(sync_conn)))
        assert {
            "agent_definitions",
            "execution_targets",
            "budget_policies",
            "budget_usage_daily",
            "audit_logs",
            "model_secrets",
        } <= tables

    @pytest.mark.asyncio
    async def test_restart_does_not_reseed(self, sqlite_url, store_defaults):
        first = SqlStore(sqlite_url, defaults=store_defaults)
        repos = build_sql_repos(store=first)
        await repos.targets.upsert(
            {"targetId": "target_local_default", "tenantId": "t_default", "isDefault": False, "enabled": False}
        )
        await repos.agents.upsert({"tenantId": "t1", "workspaceId": "w1", "agentId": "a1"})
        await first.dispose()

        second = SqlStore(sqlite_url, defaults=store_defaults)
        try:
            repos = build_sql_repos(store=second)
            targets = await repos.targets.list()
            assert len(targets) == 1
            assert targets[0].is_default is False
            assert targets[0].version == 2
            assert (await repos.agents.get("t1", "w1", "a1")).version == 1
        finally:
            await second.dispose()

    @pytest.mark.asyncio
    async def test_seed_uses_configured_defaults(self, sqlite_url):
        store = SqlStore(sqlite_url, defaults=StoreDefaults(tenant_id="acme", workspace_id="ops", target_id="seed"))
        try:
            found = await build_sql_repos(store=store).targets.find_default("acme", "ops")
            assert found.target_id == "seed"
        finally:
            await store.dispose()

    @pytest.mark.asyncio
    async def test_empty_target_table_is_reseeded_on_next_start(self, sqlite_url, store_defaults):
        first = SqlStore(sqlite_url, defaults=store_defaults)
        await first.ready()
        async with first.engine.begin() as conn:
            await conn.execute(text("DELETE FROM execution_targets"))
        await first.dispose()

        second = SqlStore(sqlite_url, defaults=store_defaults)
        try:
            assert (await build_sql_repos(store=second).targets.get("target_local_default")) is not None
        finally:
            await second.dispose()


class TestMalformedJson:
    @pytest.mark.asyncio
    async def test_malformed_config_reads_as_empty_map(self, store, repos, caplog):
        await repos.agents.upsert({"tenantId": "t1", "workspaceId": "w1", "agentId": "a1", "config": {"k": "v"}})
        async with store.engine.begin() as conn:
            await conn.execute(text("UPDATE agent_definitions SET config_json = '{broken' WHERE agent_id = 'a1'"))

        with caplog.at_level(logging.WARNING, logger="controlplane_store.repos.normalization"):
            agent = await repos.agents.get("t1", "w1", "a1")

        assert agent.config == {}
        assert "agent_definitions.config_json[a1]" in caplog.text

    @pytest.mark.asyncio
    async def test_non_object_metadata_reads_as_empty_map(self, store, repos):
        entry = await repos.audit.append({"tenantId": "t1", "metadata": {"ok": True}})
        async with store.engine.begin() as conn:
            await conn.execute(text("UPDATE audit_logs SET metadata_json = '[1, 2]'"))

        result = await repos.audit.query({"tenantId": "t1"})
        assert result.items[0].id == entry.id
        assert result.items[0].metadata == {}


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_missing_table_raises_storage_backend_error(self, store, repos):
        await store.ready()
        async with store.engine.begin() as conn:
            await conn.execute(text("DROP TABLE audit_logs"))

        with pytest.raises(StorageBackendError) as info:
            await repos.audit.append({"action": "x"})

        assert info.value.operation == "audit.append"
        assert isinstance(info.value.__cause__, SQLAlchemyError)
        assert "audit_logs" in info.value.detail

    @pytest.mark.asyncio
    async def test_failed_demotion_rolls_back_the_upsert(self, store, repos):
        await repos.targets.upsert({"targetId": "A", "tenantId": "t1", "workspaceId": "w1", "isDefault": True})

        def fail_demotion(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("UPDATE EXECUTION_TARGETS"):
                raise OperationalError(statement, parameters, Exception("injected failure"))

        event.listen(store.engine.sync_engine, "before_cursor_execute", fail_demotion)
        try:
            with pytest.raises(StorageBackendError) as info:
                await repos.targets.upsert({"targetId": "B", "tenantId": "t1", "workspaceId": "w1", "isDefault": True})
        finally:
            event.remove(store.engine.sync_engine, "before_cursor_execute", fail_demotion)

        assert info.value.operation == "targets.upsert"
        assert await repos.targets.get("B") is None
        a = await repos.targets.get("A")
        assert a.is_default is True
        assert (await repos.targets.find_default("t1", "w1")).target_id == "A"


class TestBudgetPolicyWrites:
    @pytest.mark.asyncio
    async def test_patching_a_new_scope_writes_the_policy_once(self, store, repos):
        await store.ready()
        statements = []

        def record(conn, cursor, statement, parameters, context, executemany):
            if "budget_policies" in statement and not statement.lstrip().upper().startswith("SELECT"):
                statements.append(statement.lstrip().split()[0].upper())

        event.listen(store.engine.sync_engine, "before_cursor_execute", record)
        try:
            updated = await repos.budgets.update({"tokenDailyLimit": 500}, "scope-new")
        finally:
            event.remove(store.engine.sync_engine, "before_cursor_execute", record)

        assert statements == ["INSERT"]
        assert updated.version == 2
        assert await repos.budgets.get("scope-new") == updated

    @pytest.mark.asyncio
    async def test_failed_patch_leaves_no_policy_behind(self, store, repos):
        await store.ready()

        def fail_policy_write(conn, cursor, statement, parameters, context, executemany):
            if "budget_policies" in statement and not statement.lstrip().upper().startswith("SELECT"):
                raise OperationalError(statement, parameters, Exception("injected failure"))

        event.listen(store.engine.sync_engine, "before_cursor_execute", fail_policy_write)
        try:
            with pytest.raises(StorageBackendError) as info:
                await repos.budgets.update({"tokenDailyLimit": 500}, "scope-new")
        finally:
            event.remove(store.engine.sync_engine, "before_cursor_execute", fail_policy_write)

        assert info.value.operation == "budgets.update"
        async with store.engine.connect() as conn:
            count = await conn.scalar(text("SELECT COUNT(*) FROM budget_policies"))
        assert count == 0


class TestDriverOverflow:
    @pytest.mark.asyncio
    async def test_bind_overflow_is_wrapped(self, store):
        with pytest.raises(StorageBackendError) as info:
            async with store.session("audit.query") as s:
                await s.execute(text("SELECT :n"), {"n": 10**30})

        assert info.value.operation == "audit.query"
        assert isinstance(info.value.__cause__, OverflowError)

    @pytest.mark.asyncio
    async def test_huge_usage_increment_is_stored_capped(self, repos):
        await repos.budgets.add_usage("s1", date="2024-03-15", tokens_used=1e20)
        summary = await repos.budgets.summary("s1", "2024-03-15")
        assert summary.tokens_used_daily == 2**63 - 1


class TestBuildRepos:
    @pytest.mark.asyncio
    async def test_build_repos_selects_sql_backend(self, sqlite_url, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = Settings(CONTROLPLANE_STORE_BACKEND="sql", CONTROLPLANE_STORE_DATABASE_URL=sqlite_url)
        bundle = build_repos(config)
        try:
            assert bundle.store is not None
            await bundle.budgets.add_usage("s1", date="2024-03-15", cost_usd=1.25)
            assert (await bundle.budgets.summary("s1", "2024-03-15")).cost_usd_monthly == 1.25
        finally:
            await bundle.close()
