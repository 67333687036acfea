"""End-to-end tests for the Alembic migration script.

Tests verify that the control-plane migration:
1. Creates all required tables and indexes
2. Seeds the bootstrap execution target
3. Produces a schema the SQL repositories use without re-seeding
4. Can be downgraded and upgraded again
"""

import importlib.util
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext

from controlplane_store.repos import build_sql_repos
from controlplane_store.repos.sql import SqlStore

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
MIGRATION_FILE = PROJECT_ROOT / "alembic" / "versions" / "20260301_000000_control_plane_schema.py"

TABLES = {
    "agent_definitions",
    "execution_targets",
    "budget_policies",
    "budget_usage_daily",
    "audit_logs",
    "model_secrets",
}


def _load_migration():
    spec = importlib.util.spec_from_file_location("control_plane_schema_migration", MIGRATION_FILE)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(engine: sa.Engine, step: str) -> None:
    migration = _load_migration()
    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            getattr(migration, step)()


@pytest.fixture
def db_file(tmp_path) -> Path:
    return tmp_path / "migrated.sqlite"


@pytest.fixture
def sync_engine(db_file):
    engine = sa.create_engine(f"sqlite:///{db_file}")
    yield engine
    engine.dispose()


class TestMigration:
    def test_revision_identifiers(self):
        migration = _load_migration()
        assert migration.revision == "20260301_000000"
        assert migration.down_revision is None

    def test_upgrade_creates_tables_and_indexes(self, sync_engine):
        _run(sync_engine, "upgrade")

        inspector = sa.inspect(sync_engine)
        assert TABLES <= set(inspector.get_table_names())
        index_names = {ix["name"] for ix in inspector.get_indexes("audit_logs")}
        assert {"idx_audit_logs_scope", "idx_audit_logs_action", "idx_audit_logs_created"} <= index_names
        assert inspector.get_pk_constraint("model_secrets")["constrained_columns"] == [
            "tenant_id",
            "workspace_id",
            "provider",
        ]

    def test_upgrade_seeds_bootstrap_target(self, sync_engine):
        _run(sync_engine, "upgrade")

        with sync_engine.connect() as conn:
            rows = conn.execute(
                sa.text("SELECT target_id, tenant_id, workspace_id, kind, is_default FROM execution_targets")
            ).all()
        assert [tuple(r) for r in rows] == [("target_local_default", "t_default", "w_default", "local-host", 1)]

    def test_downgrade_then_upgrade(self, sync_engine):
        _run(sync_engine, "upgrade")
        _run(sync_engine, "downgrade")
        assert not TABLES & set(sa.inspect(sync_engine).get_table_names())

        _run(sync_engine, "upgrade")
        assert TABLES <= set(sa.inspect(sync_engine).get_table_names())


@pytest.mark.asyncio
async def test_repositories_run_on_migrated_schema(sync_engine, db_file, store_defaults):
    _run(sync_engine, "upgrade")
    sync_engine.dispose()

    store = SqlStore(f"sqlite+aiosqlite:///{db_file}", defaults=store_defaults)
    try:
        repos = build_sql_repos(store=store)
        targets = await repos.targets.list()
        assert [t.target_id for t in targets] == ["target_local_default"]

        first = await repos.audit.append({"action": "a"})
        second = await repos.audit.append({"action": "b"})
        assert second.id > first.id

        await repos.budgets.add_usage("s1", date="2024-03-15", cost_usd=1.25)
        await repos.budgets.add_usage("s1", date="2024-03-15", cost_usd=1.25)
        assert (await repos.budgets.summary("s1", "2024-03-15")).cost_usd_monthly == 2.5
    finally:
        await store.dispose()
