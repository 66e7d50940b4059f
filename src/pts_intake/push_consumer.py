"""PushConsumer: long-lived task reading job ids from the Redis queue.

Blocks in bounded BRPOP slices so the shutdown event is checked between
receives. Transport errors back off and retry forever; they never end the task.
"""

import asyncio
import logging

from redis.exceptions import RedisError

from src.pts_intake.dispatch import dispatch_job, wait_for_shutdown
from src.pts_intake.queue import JobQueue
from src.pts_settlement.application.coordinator import SettlementCoordinator
from src.pts_settlement.application.schemas import SettlementJobMessage

logger = logging.getLogger(__name__)


class PushConsumer:
    def __init__(
        self,
        queue: JobQueue,
        coordinator: SettlementCoordinator,
        shutdown: asyncio.Event,
        block_timeout_seconds: int = 5,
        backoff_seconds: float = 5.0,
    ) -> None:
        self._queue = queue
        self._coordinator = coordinator
        self._shutdown = shutdown
        self._block_timeout = block_timeout_seconds
        self._backoff = backoff_seconds

    async def run(self) -> None:
        logger.info("Push consumer listening on %s", self._queue.key)
        while not self._shutdown.is_set():
            try:
                raw = await self._queue.pop(self._block_timeout)
            except (RedisError, OSError):
                logger.warning(
                    "Settlement queue receive failed; retrying in %.1fs",
                    self._backoff, exc_info=True,
                )
                await wait_for_shutdown(self._shutdown, self._backoff)
                continue

            if raw is None:
                continue
            await self.handle(raw)
        logger.info("Push consumer stopped")

    async def handle(self, raw: str) -> None:
        try:
            message = SettlementJobMessage.parse_raw_payload(raw)
        except ValueError:
            logger.warning("Dropping malformed settlement payload %r", raw)
            return
        await dispatch_job(self._coordinator, message.job_id, source="push")
