"""SQL implementation of ``AgentRepository``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from ...core.logging_config import get_logger
from ...models.domain import AgentDefinition
from .. import normalization as norm
from ..interfaces import AgentRepository, RecordInput
from ..models import AgentDefinitionRow
from .engine import SqlStore
from .rows import agent_from_row, agent_to_row, apply_agent

logger = get_logger(__name__)


@dataclass(frozen=True)
class SqlAgentRepository(AgentRepository):
    """SQL implementation of ``AgentRepository`` over ``agent_definitions``."""

    store: SqlStore

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[AgentDefinition]:
        """
        List agent definitions, newest first.

        Args:
            tenant_id: Optional tenant filter; blank values are ignored.
            workspace_id: Optional workspace filter; blank values are ignored.

        Returns:
            A list of AgentDefinition objects.
        """
        async with self.store.session("agents.list") as s:
            stmt = select(AgentDefinitionRow)
            if tenant_id:
                stmt = stmt.where(AgentDefinitionRow.tenant_id == tenant_id)
            if workspace_id:
                stmt = stmt.where(AgentDefinitionRow.workspace_id == workspace_id)
            stmt = stmt.order_by(
                AgentDefinitionRow.updated_at.desc(),
                AgentDefinitionRow.tenant_id.asc(),
                AgentDefinitionRow.workspace_id.asc(),
                AgentDefinitionRow.agent_id.asc(),
            )
            result = await s.execute(stmt)
            return [agent_from_row(row) for row in result.scalars().all()]

    async def get(self, tenant_id: str, workspace_id: str, agent_id: str) -> Optional[AgentDefinition]:
        """
        Retrieve an agent definition by its composite key.

        Returns:
            The AgentDefinition if found, otherwise None.
        """
        key = norm.agent_key(
            {"tenant_id": tenant_id, "workspace_id": workspace_id, "agent_id": agent_id},
            self.store.defaults,
        )
        async with self.store.session("agents.get") as s:
            row = await s.get(AgentDefinitionRow, key)
            return agent_from_row(row) if row is not None else None

    async def upsert(self, record: RecordInput) -> AgentDefinition:
        """
        Insert or update an agent definition, bumping its version on update.

        Args:
            record: The agent definition to write.

        Returns:
            The stored AgentDefinition.
        """
        data = norm.as_mapping(record)
        key = norm.agent_key(data, self.store.defaults)
        async with self.store.session("agents.upsert") as s:
            row = await s.get(AgentDefinitionRow, key)
            version = row.version + 1 if row is not None else norm.first_version(norm.field(data, "version"))
            agent = norm.normalize_agent(data, version=version, defaults=self.store.defaults)
            if row is None:
                s.add(agent_to_row(agent))
            else:
                apply_agent(row, agent)
            await s.commit()
        logger.debug(f"Upserted agent {key} at version {version}")
        return agent
