"""SQL implementation of ``ModelSecretRepository``.

Tenant-wide secrets are stored with ``workspace_id = ''`` and surface as
``workspace_id=None`` on records.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, select

from ...core.logging_config import get_logger
from ...models.domain import ModelSecret, ModelSecretMeta
from .. import normalization as norm
from ..interfaces import ModelSecretRepository, RecordInput
from ..models import ModelSecretRow
from .engine import SqlStore
from .rows import apply_model_secret, model_secret_from_row, model_secret_to_row

logger = get_logger(__name__)


@dataclass(frozen=True)
class SqlModelSecretRepository(ModelSecretRepository):
    """SQL implementation of ``ModelSecretRepository`` over ``model_secrets``."""

    store: SqlStore

    async def upsert(self, record: RecordInput) -> ModelSecret:
        """
        Create or overwrite the secret of ``(tenant_id, workspace_id, provider)``.

        Args:
            record: The secret to store.

        Returns:
            The stored ModelSecret.
        """
        secret = norm.normalize_model_secret(record, self.store.defaults)
        key = (secret.tenant_id, secret.workspace_id or "", secret.provider)
        async with self.store.session("secrets.upsert") as s:
            row = await s.get(ModelSecretRow, key)
            if row is None:
                s.add(model_secret_to_row(secret))
            else:
                apply_model_secret(row, secret)
            await s.commit()
        logger.debug(f"Stored model secret for {secret.tenant_id}/{secret.workspace_id or '*'}/{secret.provider}")
        return secret

    async def get_for_run(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> Optional[ModelSecret]:
        """
        Resolve the credential for an actual model call.

        Args:
            tenant_id: Tenant of the run.
            workspace_id: Workspace of the run, if any.
            provider: Provider to resolve; without it the best-ranked secret wins.

        Returns:
            The resolved ModelSecret, or None.
        """
        tenant = norm.sanitize_id(tenant_id, self.store.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        wanted = norm.optional_provider(provider)
        async with self.store.session("secrets.get_for_run") as s:
            if wanted:
                if workspace:
                    row = await s.get(ModelSecretRow, (tenant, workspace, wanted))
                    if row is not None:
                        return model_secret_from_row(row)
                row = await s.get(ModelSecretRow, (tenant, "", wanted))
                return model_secret_from_row(row) if row is not None else None

            whens = [(ModelSecretRow.workspace_id == "", 1)]
            if workspace:
                whens.insert(0, (ModelSecretRow.workspace_id == workspace, 0))
            rank = case(*whens, else_=2)
            result = await s.execute(
                select(ModelSecretRow)
                .where(ModelSecretRow.tenant_id == tenant)
                .order_by(rank, ModelSecretRow.provider.asc(), ModelSecretRow.workspace_id.asc())
                .limit(1)
            )
            row = result.scalars().first()
            return model_secret_from_row(row) if row is not None else None

    async def list_meta(
        self, tenant_id: str, workspace_id: Optional[str] = None, provider: Optional[str] = None
    ) -> list[ModelSecretMeta]:
        """
        List masked projections of a tenant's secrets, sorted by provider.

        Args:
            tenant_id: Tenant to list.
            workspace_id: Optional exact workspace filter.
            provider: Optional provider filter (case-insensitive).
        """
        tenant = norm.sanitize_id(tenant_id, self.store.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        wanted = norm.optional_provider(provider)
        stmt = select(ModelSecretRow).where(ModelSecretRow.tenant_id == tenant)
        if workspace is not None:
            stmt = stmt.where(ModelSecretRow.workspace_id == workspace)
        if wanted:
            stmt = stmt.where(ModelSecretRow.provider == wanted)
        stmt = stmt.order_by(ModelSecretRow.provider.asc(), ModelSecretRow.workspace_id.asc())
        async with self.store.session("secrets.list_meta") as s:
            result = await s.execute(stmt)
            return [norm.to_model_secret_meta(model_secret_from_row(row)) for row in result.scalars().all()]
