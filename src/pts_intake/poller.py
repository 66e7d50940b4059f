"""JobPoller: periodic fallback scan of settlement_jobs.

Picks up queued and failed jobs, plus processing jobs whose claim has gone
stale, oldest first. Order does not matter for correctness: settle() is
idempotent per job id.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pts_common.datetime_utils import utc_now
from src.pts_intake.dispatch import dispatch_job, wait_for_shutdown
from src.pts_settlement.application.coordinator import SettlementCoordinator
from src.pts_settlement.domain.repository import SettlementRepositoryProtocol
from src.pts_settlement.infrastructure.persistence import SettlementRepository

logger = logging.getLogger(__name__)


class JobPoller:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        coordinator: SettlementCoordinator,
        shutdown: asyncio.Event,
        interval_seconds: float = 5.0,
        batch_size: int = 10,
        staleness_seconds: float = 900.0,
        max_attempts: int = 0,
        repo: SettlementRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._coordinator = coordinator
        self._shutdown = shutdown
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._staleness = staleness_seconds
        self._max_attempts = max_attempts
        self._repo: SettlementRepositoryProtocol = repo or SettlementRepository()
        self._clock = clock

    async def poll_once(self) -> list[int]:
        """Scan one batch and dispatch each job sequentially. Returns the scanned ids."""
        stale_before = self._clock() - timedelta(seconds=self._staleness)
        async with self._session_factory() as db:
            job_ids = await self._repo.list_retryable_job_ids(
                db, self._batch_size, stale_before, self._max_attempts
            )
        if job_ids:
            logger.info("Poll found %d retryable settlement job(s): %s", len(job_ids), job_ids)
        for job_id in job_ids:
            if self._shutdown.is_set():
                break
            await dispatch_job(self._coordinator, job_id, source="poll")
        return job_ids

    async def run(self) -> None:
        logger.info(
            "Job poller started (interval=%.1fs, batch=%d)", self._interval, self._batch_size
        )
        while not self._shutdown.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Settlement poll failed; retrying next interval")
            await wait_for_shutdown(self._shutdown, self._interval)
        logger.info("Job poller stopped")
