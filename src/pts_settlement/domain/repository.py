"""Repository Protocol for settlement jobs, markets and positions.

Unit tests inject a mock or an in-memory fake that conforms to this Protocol.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_settlement.domain.models import Market, Position, SettlementJob


class SettlementRepositoryProtocol(Protocol):
    # --- jobs ---
    async def create_job(
        self,
        db: AsyncSession,
        market_id: int,
        result_option_id: int,
        resolved_by: int | None,
    ) -> SettlementJob: ...

    async def get_job(self, db: AsyncSession, job_id: int) -> SettlementJob | None: ...

    async def lock_job(self, db: AsyncSession, job_id: int) -> SettlementJob | None: ...

    async def claim_job(self, db: AsyncSession, job_id: int, started_at: datetime) -> None: ...

    async def complete_job(self, db: AsyncSession, job_id: int, completed_at: datetime) -> None: ...

    async def fail_job(
        self, db: AsyncSession, job_id: int, attempts: int, error_message: str
    ) -> bool: ...

    async def list_retryable_job_ids(
        self,
        db: AsyncSession,
        limit: int,
        stale_before: datetime,
        max_attempts: int,
    ) -> list[int]: ...

    # --- markets ---
    async def get_market(self, db: AsyncSession, market_id: int) -> Market | None: ...

    async def lock_market(self, db: AsyncSession, market_id: int) -> Market | None: ...

    async def option_belongs_to_market(
        self, db: AsyncSession, option_id: int, market_id: int
    ) -> bool: ...

    async def resolve_market(
        self, db: AsyncSession, market_id: int, result_option_id: int, resolved_at: datetime
    ) -> None: ...

    # --- positions ---
    async def lock_open_positions(self, db: AsyncSession, market_id: int) -> list[Position]: ...

    async def settle_position(
        self, db: AsyncSession, position_id: int, payout_points: int, settled_at: datetime
    ) -> None: ...
