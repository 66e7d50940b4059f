"""SettlementRepository — SQL for settlement_jobs, markets, market_options, positions.

Every state transition is guarded in its WHERE clause so a stale or duplicate
caller updates zero rows instead of re-applying a transition; zero rows where
one was expected raises InternalError and aborts the unit of work.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_common.errors import InternalError
from src.pts_settlement.domain.models import Market, Position, SettlementJob

_JOB_COLUMNS = """
    id, market_id, result_option_id, status, attempts,
    started_at, completed_at, error_message, resolved_by, created_at
"""

_INSERT_JOB_SQL = text(f"""
    INSERT INTO settlement_jobs (market_id, result_option_id, status, resolved_by)
    VALUES (:market_id, :result_option_id, 'queued', :resolved_by)
    RETURNING {_JOB_COLUMNS}
""")

_GET_JOB_SQL = text(f"SELECT {_JOB_COLUMNS} FROM settlement_jobs WHERE id = :job_id")

_LOCK_JOB_SQL = text(f"SELECT {_JOB_COLUMNS} FROM settlement_jobs WHERE id = :job_id FOR UPDATE")

_CLAIM_JOB_SQL = text("""
    UPDATE settlement_jobs
    SET status = 'processing',
        attempts = attempts + 1,
        error_message = NULL,
        started_at = :started_at,
        completed_at = NULL,
        updated_at = NOW()
    WHERE id = :job_id AND status <> 'completed'
""")

_COMPLETE_JOB_SQL = text("""
    UPDATE settlement_jobs
    SET status = 'completed',
        completed_at = :completed_at,
        error_message = NULL,
        updated_at = NOW()
    WHERE id = :job_id AND status = 'processing'
""")

_FAIL_JOB_SQL = text("""
    UPDATE settlement_jobs
    SET status = 'failed',
        error_message = :error_message,
        updated_at = NOW()
    WHERE id = :job_id AND status = 'processing' AND attempts = :attempts
""")

_LIST_RETRYABLE_SQL = text("""
    SELECT id FROM settlement_jobs
    WHERE (
            status IN ('queued', 'failed')
            OR (status = 'processing' AND started_at < :stale_before)
          )
      AND (:max_attempts = 0 OR attempts < :max_attempts)
    ORDER BY created_at ASC, id ASC
    LIMIT :limit
""")

_MARKET_COLUMNS = "id, status, result_option_id, resolved_at"

_GET_MARKET_SQL = text(f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = :market_id")

_LOCK_MARKET_SQL = text(
    f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = :market_id FOR UPDATE"
)

_OPTION_IN_MARKET_SQL = text("""
    SELECT 1 FROM market_options WHERE id = :option_id AND market_id = :market_id
""")

_RESOLVE_MARKET_SQL = text("""
    UPDATE markets
    SET status = 'resolved',
        result_option_id = :result_option_id,
        resolved_at = :resolved_at,
        updated_at = NOW()
    WHERE id = :market_id AND status = 'open'
""")

# Lock order within a market: account_id ascending, then position id
_LOCK_OPEN_POSITIONS_SQL = text("""
    SELECT id, market_id, option_id, account_id, stake_points,
           odds_at_purchase, status, payout_points
    FROM positions
    WHERE market_id = :market_id AND status = 'open'
    ORDER BY account_id ASC, id ASC
    FOR UPDATE
""")

_SETTLE_POSITION_SQL = text("""
    UPDATE positions
    SET status = 'settled',
        payout_points = :payout_points,
        settled_at = :settled_at,
        updated_at = NOW()
    WHERE id = :position_id AND status = 'open'
""")


def _row_to_job(row: Any) -> SettlementJob:
    return SettlementJob(
        id=row.id,
        market_id=row.market_id,
        result_option_id=row.result_option_id,
        status=row.status,
        attempts=row.attempts,
        started_at=row.started_at,
        completed_at=row.completed_at,
        error_message=row.error_message,
        resolved_by=row.resolved_by,
        created_at=row.created_at,
    )


def _row_to_market(row: Any) -> Market:
    return Market(
        id=row.id,
        status=row.status,
        result_option_id=row.result_option_id,
        resolved_at=row.resolved_at,
    )


def _row_to_position(row: Any) -> Position:
    return Position(
        id=row.id,
        market_id=row.market_id,
        option_id=row.option_id,
        account_id=row.account_id,
        stake_points=row.stake_points,
        odds_at_purchase=Decimal(row.odds_at_purchase),
        status=row.status,
        payout_points=row.payout_points,
    )


def _expect_one(rowcount: int, what: str) -> None:
    if rowcount != 1:
        raise InternalError(f"{what}: expected 1 row, updated {rowcount}")


class SettlementRepository:
    # --- jobs ---

    async def create_job(
        self,
        db: AsyncSession,
        market_id: int,
        result_option_id: int,
        resolved_by: int | None,
    ) -> SettlementJob:
        row = (
            await db.execute(
                _INSERT_JOB_SQL,
                {
                    "market_id": market_id,
                    "result_option_id": result_option_id,
                    "resolved_by": resolved_by,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Settlement job insert returned no rows")
        return _row_to_job(row)

    async def get_job(self, db: AsyncSession, job_id: int) -> SettlementJob | None:
        row = (await db.execute(_GET_JOB_SQL, {"job_id": job_id})).fetchone()
        return _row_to_job(row) if row else None

    async def lock_job(self, db: AsyncSession, job_id: int) -> SettlementJob | None:
        row = (await db.execute(_LOCK_JOB_SQL, {"job_id": job_id})).fetchone()
        return _row_to_job(row) if row else None

    async def claim_job(self, db: AsyncSession, job_id: int, started_at: datetime) -> None:
        result = await db.execute(_CLAIM_JOB_SQL, {"job_id": job_id, "started_at": started_at})
        _expect_one(result.rowcount, f"claim job {job_id}")

    async def complete_job(self, db: AsyncSession, job_id: int, completed_at: datetime) -> None:
        result = await db.execute(
            _COMPLETE_JOB_SQL, {"job_id": job_id, "completed_at": completed_at}
        )
        _expect_one(result.rowcount, f"complete job {job_id}")

    async def fail_job(
        self, db: AsyncSession, job_id: int, attempts: int, error_message: str
    ) -> bool:
        """Mark a claimed job failed. Returns False if the claim was superseded."""
        result = await db.execute(
            _FAIL_JOB_SQL,
            {"job_id": job_id, "attempts": attempts, "error_message": error_message},
        )
        return result.rowcount == 1

    async def list_retryable_job_ids(
        self,
        db: AsyncSession,
        limit: int,
        stale_before: datetime,
        max_attempts: int,
    ) -> list[int]:
        result = await db.execute(
            _LIST_RETRYABLE_SQL,
            {"limit": limit, "stale_before": stale_before, "max_attempts": max_attempts},
        )
        return [int(row.id) for row in result.fetchall()]

    # --- markets ---

    async def get_market(self, db: AsyncSession, market_id: int) -> Market | None:
        row = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
        return _row_to_market(row) if row else None

    async def lock_market(self, db: AsyncSession, market_id: int) -> Market | None:
        row = (await db.execute(_LOCK_MARKET_SQL, {"market_id": market_id})).fetchone()
        return _row_to_market(row) if row else None

    async def option_belongs_to_market(
        self, db: AsyncSession, option_id: int, market_id: int
    ) -> bool:
        row = (
            await db.execute(
                _OPTION_IN_MARKET_SQL, {"option_id": option_id, "market_id": market_id}
            )
        ).fetchone()
        return row is not None

    async def resolve_market(
        self, db: AsyncSession, market_id: int, result_option_id: int, resolved_at: datetime
    ) -> None:
        result = await db.execute(
            _RESOLVE_MARKET_SQL,
            {
                "market_id": market_id,
                "result_option_id": result_option_id,
                "resolved_at": resolved_at,
            },
        )
        _expect_one(result.rowcount, f"resolve market {market_id}")

    # --- positions ---

    async def lock_open_positions(self, db: AsyncSession, market_id: int) -> list[Position]:
        result = await db.execute(_LOCK_OPEN_POSITIONS_SQL, {"market_id": market_id})
        return [_row_to_position(row) for row in result.fetchall()]

    async def settle_position(
        self, db: AsyncSession, position_id: int, payout_points: int, settled_at: datetime
    ) -> None:
        result = await db.execute(
            _SETTLE_POSITION_SQL,
            {"position_id": position_id, "payout_points": payout_points, "settled_at": settled_at},
        )
        _expect_one(result.rowcount, f"settle position {position_id}")

