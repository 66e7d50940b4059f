"""SettlementApplicationService: admin-side job creation and lookup.

The job row is committed before the id is pushed, so a consumer never sees an
id it cannot load. A failed push is logged, not raised: the poll path scans
queued jobs and picks the job up anyway.
"""

import logging

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_common.enums import MarketStatus
from src.pts_common.errors import (
    MarketAlreadyResolvedError,
    MarketNotFoundError,
    SettlementJobNotFoundError,
    SettlementValidationError,
)
from src.pts_intake.queue import JobQueue
from src.pts_settlement.application.schemas import SettlementJobResponse
from src.pts_settlement.domain.repository import SettlementRepositoryProtocol
from src.pts_settlement.infrastructure.persistence import SettlementRepository

logger = logging.getLogger(__name__)


class SettlementApplicationService:
    def __init__(self, repo: SettlementRepositoryProtocol | None = None) -> None:
        self._repo: SettlementRepositoryProtocol = repo or SettlementRepository()

    async def request_settlement(
        self,
        db: AsyncSession,
        queue: JobQueue,
        market_id: int,
        result_option_id: int,
        resolved_by: int | None,
    ) -> SettlementJobResponse:
        try:
            market = await self._repo.get_market(db, market_id)
            if market is None:
                raise MarketNotFoundError(market_id)
            if market.status == MarketStatus.RESOLVED:
                raise MarketAlreadyResolvedError(market_id)
            if not await self._repo.option_belongs_to_market(db, result_option_id, market_id):
                raise SettlementValidationError(
                    f"option {result_option_id} does not belong to market {market_id}"
                )
            job = await self._repo.create_job(db, market_id, result_option_id, resolved_by)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        enqueued = True
        try:
            await queue.push(job.id)
        except RedisError:
            enqueued = False
            logger.warning(
                "Could not push settlement job %s to %s; poll path will pick it up",
                job.id, queue.key, exc_info=True,
            )
        logger.info(
            "Settlement job %s queued for market %s (option %s, by %s)",
            job.id, market_id, result_option_id, resolved_by,
        )
        return SettlementJobResponse.from_job(job, enqueued=enqueued)

    async def get_job(self, db: AsyncSession, job_id: int) -> SettlementJobResponse:
        job = await self._repo.get_job(db, job_id)
        if job is None:
            raise SettlementJobNotFoundError(job_id)
        return SettlementJobResponse.from_job(job)
