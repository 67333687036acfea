"""Contract tests for AgentRepository, shared by every backend."""

import pytest

from controlplane_store.models import AgentDefinition, RuntimeMode


@pytest.mark.asyncio
async def test_upsert_creates_then_bumps_version(repos, tenant_id, workspace_id):
    created = await repos.agents.upsert(
        {"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "a1", "name": "Planner"}
    )
    assert isinstance(created, AgentDefinition)
    assert created.version == 1

    updated = await repos.agents.upsert(
        {"tenant_id": tenant_id, "workspace_id": workspace_id, "agent_id": "a1", "name": "Planner v2", "version": 99}
    )
    assert updated.version == 2
    assert updated.name == "Planner v2"

    fetched = await repos.agents.get(tenant_id, workspace_id, "a1")
    assert fetched == updated


@pytest.mark.asyncio
async def test_first_insert_honors_supplied_version(repos, tenant_id, workspace_id):
    created = await repos.agents.upsert(
        {"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "a1", "version": 5}
    )
    assert created.version == 5


@pytest.mark.asyncio
async def test_upsert_normalizes_input(repos):
    created = await repos.agents.upsert(
        {"name": "  spaced   out  ", "runtimeMode": "cloud", "config": {"model": "gpt-4o"}, "enabled": False}
    )
    assert (created.tenant_id, created.workspace_id, created.agent_id) == ("t_default", "w_default", "a_default")
    assert created.name == "spaced out"
    assert created.runtime_mode is RuntimeMode.cloud
    assert created.enabled is False

    fetched = await repos.agents.get("t_default", "w_default", "a_default")
    assert fetched.config == {"model": "gpt-4o"}
    assert fetched.runtime_mode is RuntimeMode.cloud


@pytest.mark.asyncio
async def test_get_missing_returns_none(repos, tenant_id, workspace_id):
    assert await repos.agents.get(tenant_id, workspace_id, "missing") is None


@pytest.mark.asyncio
async def test_list_filters_and_orders_newest_first(repos, tenant_id, workspace_id):
    await repos.agents.upsert(
        {"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "old", "updatedAt": "2024-01-01T00:00:00.000Z"}
    )
    await repos.agents.upsert(
        {"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "new", "updatedAt": "2024-02-01T00:00:00.000Z"}
    )
    await repos.agents.upsert(
        {
            "tenantId": tenant_id,
            "workspaceId": "w_other",
            "agentId": "elsewhere",
            "updatedAt": "2024-03-01T00:00:00.000Z",
        }
    )
    await repos.agents.upsert(
        {
            "tenantId": "t_other",
            "workspaceId": workspace_id,
            "agentId": "foreign",
            "updatedAt": "2024-04-01T00:00:00.000Z",
        }
    )

    scoped = await repos.agents.list(tenant_id, workspace_id)
    assert [a.agent_id for a in scoped] == ["new", "old"]

    tenant_wide = await repos.agents.list(tenant_id)
    assert [a.agent_id for a in tenant_wide] == ["elsewhere", "new", "old"]

    everything = await repos.agents.list()
    assert [a.agent_id for a in everything] == ["foreign", "elsewhere", "new", "old"]
