"""SQL implementation of ``AuditRepository`` (append-only)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from ...core.logging_config import get_logger
from ...models.domain import AuditLogEntry, AuditQueryResult
from .. import normalization as norm
from ..interfaces import AuditRepository, RecordInput
from ..models import AuditLogRow
from .engine import SqlStore
from .rows import audit_from_row, audit_to_row

logger = get_logger(__name__)


@dataclass(frozen=True)
class SqlAuditRepository(AuditRepository):
    """SQL implementation of ``AuditRepository``.

    Ids come from the ``audit_logs`` autoincrement column and therefore grow
    strictly for the lifetime of the database.
    """

    store: SqlStore

    async def append(self, entry: RecordInput) -> AuditLogEntry:
        """
        Append an audit entry.

        Args:
            entry: The entry to append; its id (if any) is ignored.

        Returns:
            The stored AuditLogEntry with its assigned id.
        """
        draft = norm.normalize_audit_entry(entry, entry_id=0, defaults=self.store.defaults)
        async with self.store.session("audit.append") as s:
            row = audit_to_row(draft)
            s.add(row)
            await s.flush()
            entry_id = row.id
            await s.commit()
        logger.debug(f"Appended audit entry {entry_id} ({draft.action})")
        return draft.model_copy(update={"id": entry_id})

    async def query(self, params: Optional[RecordInput] = None) -> AuditQueryResult:
        """
        Query audit entries, highest id first.

        Args:
            params: AuditQuery or mapping with optional filters, ``limit`` and ``cursor``.

        Returns:
            An AuditQueryResult; ``next_cursor`` is set only for a full page.
        """
        data = norm.as_mapping(params)
        tenant_id = norm.field(data, "tenant_id")
        workspace_id = norm.field(data, "workspace_id")
        action = norm.field(data, "action")
        from_ = norm.field(data, "from_", "from")
        to = norm.field(data, "to")
        limit = norm.normalize_limit(norm.field(data, "limit"))
        cursor = norm.normalize_cursor(norm.field(data, "cursor"))

        stmt = select(AuditLogRow)
        if tenant_id:
            stmt = stmt.where(AuditLogRow.tenant_id == tenant_id)
        if workspace_id:
            stmt = stmt.where(AuditLogRow.workspace_id == workspace_id)
        if action:
            stmt = stmt.where(AuditLogRow.action == action)
        if from_:
            stmt = stmt.where(AuditLogRow.created_at >= from_)
        if to:
            stmt = stmt.where(AuditLogRow.created_at <= to)
        if cursor is not None:
            stmt = stmt.where(AuditLogRow.id < cursor)
        stmt = stmt.order_by(AuditLogRow.id.desc()).limit(limit)

        async with self.store.session("audit.query") as s:
            result = await s.execute(stmt)
            items = [audit_from_row(row) for row in result.scalars().all()]
        return AuditQueryResult(items=items, next_cursor=items[-1].id if len(items) == limit else None)
