"""Contract tests for nested config/metadata maps, shared by every backend."""

import pytest


@pytest.mark.asyncio
async def test_agent_config_is_not_aliased_to_caller_input(repos, tenant_id, workspace_id):
    config = {"model": {"temperature": 0.1, "stop": ["###"]}}
    await repos.agents.upsert({"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "a1", "config": config})

    config["model"]["temperature"] = 0.9
    config["model"]["stop"].append("END")

    stored = await repos.agents.get(tenant_id, workspace_id, "a1")
    assert stored.config == {"model": {"temperature": 0.1, "stop": ["###"]}}


@pytest.mark.asyncio
async def test_target_config_is_not_aliased_to_caller_input(repos, tenant_id):
    config = {"docker": {"image": "runner:1"}}
    await repos.targets.upsert({"targetId": "T", "tenantId": tenant_id, "config": config})

    config["docker"]["image"] = "runner:2"

    assert (await repos.targets.get("T")).config == {"docker": {"image": "runner:1"}}


@pytest.mark.asyncio
async def test_audit_metadata_is_not_aliased_to_caller_input(repos, tenant_id):
    metadata = {"k": {"x": 1}}
    await repos.audit.append({"tenantId": tenant_id, "action": "a", "metadata": metadata})

    metadata["k"]["x"] = 2

    result = await repos.audit.query({"tenantId": tenant_id})
    assert result.items[0].metadata == {"k": {"x": 1}}


@pytest.mark.asyncio
async def test_returned_nested_maps_do_not_write_through(repos, tenant_id, workspace_id):
    returned = await repos.agents.upsert(
        {"tenantId": tenant_id, "workspaceId": workspace_id, "agentId": "a1", "config": {"model": {"name": "m"}}}
    )
    returned.config["model"]["name"] = "changed"

    stored = await repos.agents.get(tenant_id, workspace_id, "a1")
    assert stored.config == {"model": {"name": "m"}}
