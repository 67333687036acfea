"""SQL implementation of ``BudgetRepository``.

Usage increments are written with a dialect-native ``INSERT ... ON CONFLICT DO
UPDATE`` that adds to the stored counters, so concurrent writers never lose an
increment. Monthly cost is recomputed from the daily rows on every summary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import Float, Numeric, cast, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from ...core.logging_config import get_logger
from ...models.domain import BudgetPolicy, BudgetUsageSummary
from .. import normalization as norm
from ..interfaces import BudgetRepository, RecordInput
from ..models import BudgetPolicyRow, BudgetUsageDailyRow
from .engine import SqlStore
from .rows import apply_budget_policy, budget_policy_from_row, budget_policy_to_row

logger = get_logger(__name__)

_UPSERT_INSERTS = {"sqlite": sqlite_insert, "postgresql": postgresql_insert}


def _round6(expr):
    return func.round(cast(expr, Numeric), 6, type_=Float)


@dataclass(frozen=True)
class SqlBudgetRepository(BudgetRepository):
    """SQL implementation of ``BudgetRepository`` over ``budget_policies`` and ``budget_usage_daily``."""

    store: SqlStore

    async def _write_policy(
        self, s, scope_key: str, patch: Optional[RecordInput] = None, *, retry: bool = True
    ) -> BudgetPolicy:
        """Create the policy when missing and apply ``patch``, all in one commit."""
        row = await s.get(BudgetPolicyRow, scope_key)
        created = row is None
        if created:
            row = budget_policy_to_row(norm.new_budget_policy(scope_key))
            s.add(row)
        elif patch is None:
            return budget_policy_from_row(row)

        policy = budget_policy_from_row(row)
        if patch is not None:
            policy = norm.apply_budget_patch(policy, patch)
            apply_budget_policy(row, policy)
        try:
            await s.commit()
        except IntegrityError:
            if not (created and retry):
                raise
            # Another writer created the policy first.
            await s.rollback()
            return await self._write_policy(s, scope_key, patch, retry=False)
        if created:
            logger.debug(f"Created budget policy for scope {scope_key}")
        return policy

    async def get(self, scope_key: Optional[str] = None) -> BudgetPolicy:
        """
        Return the policy of a scope, creating an unlimited one on first read.

        Args:
            scope_key: Budget scope; the default workspace scope when omitted.
        """
        key = norm.budget_scope_key(scope_key, self.store.defaults)
        async with self.store.session("budgets.get") as s:
            return await self._write_policy(s, key)

    async def update(self, patch: RecordInput, scope_key: Optional[str] = None) -> BudgetPolicy:
        """
        Apply the provided fields of ``patch`` and bump the version.

        Args:
            patch: A BudgetPolicyPatch or mapping with the fields to change.
            scope_key: Budget scope; the default workspace scope when omitted.

        Returns:
            The updated BudgetPolicy.
        """
        key = norm.budget_scope_key(scope_key, self.store.defaults)
        async with self.store.session("budgets.update") as s:
            policy = await self._write_policy(s, key, patch)
        logger.debug(f"Updated budget policy {key} to version {policy.version}")
        return policy

    async def add_usage(
        self,
        scope_key: str,
        *,
        date: Optional[str] = None,
        tokens_used: Any = None,
        cost_usd: Any = None,
        runs_rejected: Any = None,
        updated_at: Optional[str] = None,
    ) -> None:
        """
        Add usage to the ``(scope_key, date)`` ledger row.

        Args:
            scope_key: Budget scope.
            date: ``YYYY-MM-DD``; today (UTC) when omitted or malformed.
            tokens_used: Tokens to add; negative or non-numeric counts as 0.
            cost_usd: Cost to add in USD; negative or non-numeric counts as 0.
            runs_rejected: Rejected runs to add; negative or non-numeric counts as 0.
            updated_at: Timestamp stamped on the row; now when omitted.
        """
        key = norm.budget_scope_key(scope_key, self.store.defaults)
        values = {
            "scope_key": key,
            "date_ymd": norm.normalize_date(date) or norm.today_ymd(),
            "tokens_used": norm.normalize_int(tokens_used),
            "cost_usd": norm.normalize_cost(cost_usd),
            "runs_rejected": norm.normalize_int(runs_rejected),
            "updated_at": norm.sanitize_id(updated_at, "") or norm.now_iso(),
        }
        async with self.store.session("budgets.add_usage") as s:
            insert = _UPSERT_INSERTS.get(self.store.dialect_name)
            if insert is not None:
                stmt = insert(BudgetUsageDailyRow).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[BudgetUsageDailyRow.scope_key, BudgetUsageDailyRow.date_ymd],
                    set_={
                        "tokens_used": BudgetUsageDailyRow.tokens_used + stmt.excluded.tokens_used,
                        "cost_usd": _round6(BudgetUsageDailyRow.cost_usd + stmt.excluded.cost_usd),
                        "runs_rejected": BudgetUsageDailyRow.runs_rejected + stmt.excluded.runs_rejected,
                        "updated_at": stmt.excluded.updated_at,
                    },
                )
                await s.execute(stmt)
            else:
                row = await s.get(BudgetUsageDailyRow, (key, values["date_ymd"]), with_for_update=True)
                if row is None:
                    s.add(BudgetUsageDailyRow(**values))
                else:
                    row.tokens_used += values["tokens_used"]
                    row.cost_usd = norm.round6(row.cost_usd + values["cost_usd"])
                    row.runs_rejected += values["runs_rejected"]
                    row.updated_at = values["updated_at"]
            await s.commit()
        logger.debug(f"Recorded usage for scope {key} on {values['date_ymd']}")

    async def summary(self, scope_key: str, date: Optional[str] = None) -> BudgetUsageSummary:
        """
        Summarize usage for ``date`` and its calendar month.

        Returns:
            Daily tokens/rejected runs plus the cost summed over the month's rows.
        """
        key = norm.budget_scope_key(scope_key, self.store.defaults)
        day = norm.normalize_date(date) or norm.today_ymd()
        month = day[:7]
        async with self.store.session("budgets.summary") as s:
            daily = await s.get(BudgetUsageDailyRow, (key, day))
            monthly_cost = await s.scalar(
                select(func.coalesce(func.sum(BudgetUsageDailyRow.cost_usd), 0.0)).where(
                    BudgetUsageDailyRow.scope_key == key,
                    BudgetUsageDailyRow.date_ymd.startswith(month, autoescape=True),
                )
            )
        return BudgetUsageSummary(
            scope_key=key,
            date=day,
            month=month,
            tokens_used_daily=daily.tokens_used if daily is not None else 0,
            cost_usd_monthly=norm.round6(monthly_cost or 0.0),
            runs_rejected_daily=daily.runs_rejected if daily is not None else 0,
        )
