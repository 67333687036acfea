"""SQL implementation of ``ExecutionTargetRepository``.

The upsert and the demotion of sibling defaults run in one transaction, so a
failure leaves neither change behind and a scope never ends up with two
defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select, update

from ...core.logging_config import get_logger
from ...models.domain import ExecutionTarget
from .. import normalization as norm
from ..interfaces import ExecutionTargetRepository, RecordInput
from ..models import ExecutionTargetRow
from .engine import SqlStore
from .rows import apply_target, target_from_row, target_to_row

logger = get_logger(__name__)

_ORDER = (ExecutionTargetRow.updated_at.desc(), ExecutionTargetRow.target_id.asc())


def _workspace_is(workspace_id: Optional[str]):
    if workspace_id is None:
        return ExecutionTargetRow.workspace_id.is_(None)
    return ExecutionTargetRow.workspace_id == workspace_id


@dataclass(frozen=True)
class SqlExecutionTargetRepository(ExecutionTargetRepository):
    """SQL implementation of ``ExecutionTargetRepository`` over ``execution_targets``."""

    store: SqlStore

    async def list(self, tenant_id: Optional[str] = None, workspace_id: Optional[str] = None) -> list[ExecutionTarget]:
        """
        List execution targets, newest first.

        Args:
            tenant_id: Optional tenant filter; blank values are ignored.
            workspace_id: Optional exact workspace filter; ``""`` selects
                tenant-wide targets.
        """
        async with self.store.session("targets.list") as s:
            stmt = select(ExecutionTargetRow)
            if tenant_id:
                stmt = stmt.where(ExecutionTargetRow.tenant_id == tenant_id)
            if workspace_id is not None:
                stmt = stmt.where(func.coalesce(ExecutionTargetRow.workspace_id, "") == workspace_id)
            result = await s.execute(stmt.order_by(*_ORDER))
            return [target_from_row(row) for row in result.scalars().all()]

    async def get(self, target_id: str) -> Optional[ExecutionTarget]:
        async with self.store.session("targets.get") as s:
            row = await s.get(ExecutionTargetRow, norm.sanitize_id(target_id, ""))
            return target_from_row(row) if row is not None else None

    async def find_default(self, tenant_id: str, workspace_id: Optional[str] = None) -> Optional[ExecutionTarget]:
        """
        Resolve the default target: exact workspace first, then tenant-wide.

        Returns:
            The resolved ExecutionTarget, or None.
        """
        tenant = norm.sanitize_id(tenant_id, self.store.defaults.tenant_id)
        workspace = norm.sanitize_optional(workspace_id)
        async with self.store.session("targets.find_default") as s:
            base = select(ExecutionTargetRow).where(
                ExecutionTargetRow.tenant_id == tenant,
                ExecutionTargetRow.enabled.is_(True),
                ExecutionTargetRow.is_default.is_(True),
            )
            for scope in (workspace, None):
                result = await s.execute(base.where(_workspace_is(scope)).order_by(*_ORDER).limit(1))
                row = result.scalars().first()
                if row is not None:
                    return target_from_row(row)
            return None

    async def upsert(self, record: RecordInput) -> ExecutionTarget:
        """
        Insert or update an execution target.

        When the target is a default, the other defaults of its scope are
        demoted in the same transaction; they get a new ``updated_at`` but keep
        their version.

        Args:
            record: The execution target to write.

        Returns:
            The stored ExecutionTarget.
        """
        data = norm.as_mapping(record)
        target_id = norm.target_id_of(data) or norm.generated_target_id()
        async with self.store.session("targets.upsert") as s:
            row = await s.get(ExecutionTargetRow, target_id)
            version = row.version + 1 if row is not None else norm.first_version(norm.field(data, "version"))
            target = norm.normalize_target(data, version=version, defaults=self.store.defaults, target_id=target_id)
            if row is None:
                s.add(target_to_row(target))
            else:
                apply_target(row, target)

            if target.is_default:
                await s.flush()
                result = await s.execute(
                    update(ExecutionTargetRow)
                    .where(
                        ExecutionTargetRow.tenant_id == target.tenant_id,
                        func.coalesce(ExecutionTargetRow.workspace_id, "") == (target.workspace_id or ""),
                        ExecutionTargetRow.target_id != target.target_id,
                        ExecutionTargetRow.is_default.is_(True),
                    )
                    .values(is_default=False, updated_at=norm.now_iso())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount:
                    logger.debug(f"Demoted {result.rowcount} default target(s) in favor of {target.target_id}")
            await s.commit()
        logger.debug(f"Upserted execution target {target.target_id} at version {version}")
        return target
