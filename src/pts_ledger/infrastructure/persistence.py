"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

Row locks (SELECT ... FOR UPDATE) are held until the caller's transaction ends.
Transaction ownership: the CALLER (application service or settlement
coordinator) starts and commits the transaction via `async with db.begin()`.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_audit.domain.models import LedgerEntry
from src.pts_audit.infrastructure.recorder import row_to_entry
from src.pts_common.enums import FEE_ACTION_PREFIX
from src.pts_common.errors import InternalError
from src.pts_ledger.domain.models import Account, FeeSummary

_GET_ACCOUNT_SQL = text("""
    SELECT id, points_balance, is_fee_account, created_at, updated_at
    FROM accounts
    WHERE id = :account_id
""")

_LOCK_ACCOUNT_SQL = text("""
    SELECT id, points_balance, is_fee_account, created_at, updated_at
    FROM accounts
    WHERE id = :account_id
    FOR UPDATE
""")

_SET_BALANCE_SQL = text("""
    UPDATE accounts
    SET points_balance = :points_balance,
        updated_at = NOW()
    WHERE id = :account_id
""")

_FIND_FEE_ACCOUNT_SQL = text("""
    SELECT id FROM accounts
    WHERE is_fee_account
    ORDER BY id ASC
    LIMIT 1
""")

_LIST_ENTRIES_SQL = text("""
    SELECT id, actor_account_id, target_account_id, action, reason,
           points_delta, points_before, points_after,
           related_entity_type, related_entity_id, metadata, created_at
    FROM ledger_entries
    WHERE target_account_id = :account_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:action AS VARCHAR) IS NULL OR action = :action)
    ORDER BY id DESC
    LIMIT :limit
""")

_FEE_SUMMARY_SQL = text("""
    SELECT COALESCE(SUM(points_delta), 0) AS total_fees, COUNT(*) AS entries
    FROM ledger_entries
    WHERE left(action, length(:prefix)) = :prefix
      AND points_delta IS NOT NULL
      AND (CAST(:since AS TIMESTAMPTZ) IS NULL OR created_at >= :since)
      AND (CAST(:until AS TIMESTAMPTZ) IS NULL OR created_at < :until)
""")


def _row_to_account(row: Any) -> Account:
    return Account(
        id=row.id,
        points_balance=row.points_balance,
        is_fee_account=bool(row.is_fee_account),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class LedgerRepository:
    async def get_account(self, db: AsyncSession, account_id: int) -> Account | None:
        row = (await db.execute(_GET_ACCOUNT_SQL, {"account_id": account_id})).fetchone()
        return _row_to_account(row) if row else None

    async def lock_account(self, db: AsyncSession, account_id: int) -> Account | None:
        row = (await db.execute(_LOCK_ACCOUNT_SQL, {"account_id": account_id})).fetchone()
        return _row_to_account(row) if row else None

    async def lock_accounts(self, db: AsyncSession, account_ids: list[int]) -> list[Account]:
        """Lock accounts one at a time in ascending id order (deadlock-free ordering)."""
        locked: list[Account] = []
        for account_id in sorted(set(account_ids)):
            account = await self.lock_account(db, account_id)
            if account is not None:
                locked.append(account)
        return locked

    async def set_balance(self, db: AsyncSession, account_id: int, points_balance: int) -> None:
        result = await db.execute(
            _SET_BALANCE_SQL, {"account_id": account_id, "points_balance": points_balance}
        )
        if result.rowcount != 1:
            raise InternalError(f"Balance update touched {result.rowcount} rows for {account_id}")

    async def find_fee_account_id(self, db: AsyncSession) -> int | None:
        row = (await db.execute(_FIND_FEE_ACCOUNT_SQL)).fetchone()
        return int(row.id) if row else None

    async def list_entries(
        self,
        db: AsyncSession,
        account_id: int,
        cursor_id: int | None,
        limit: int,
        action: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_ENTRIES_SQL,
            {
                "account_id": account_id,
                "cursor_id": cursor_id,
                "limit": limit,
                "action": action,
            },
        )
        return [row_to_entry(row) for row in result.fetchall()]

    async def fee_summary(
        self, db: AsyncSession, since: datetime | None, until: datetime | None
    ) -> FeeSummary:
        row = (
            await db.execute(
                _FEE_SUMMARY_SQL,
                {"prefix": FEE_ACTION_PREFIX, "since": since, "until": until},
            )
        ).fetchone()
        if row is None:
            return FeeSummary(total_fees=0, entries=0)
        return FeeSummary(total_fees=int(row.total_fees), entries=int(row.entries))
