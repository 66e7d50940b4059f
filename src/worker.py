"""Settlement worker entry point: push consumer + fallback poller on one event loop.

Run with: python -m src.worker   (any number of replicas)
"""

import asyncio
import logging
import signal
import sys

import uvloop
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.pts_common.database import async_session_factory, engine
from src.pts_common.logging_config import configure_logging
from src.pts_common.redis_client import close_redis, get_redis
from src.pts_intake.poller import JobPoller
from src.pts_intake.push_consumer import PushConsumer
from src.pts_intake.queue import JobQueue
from src.pts_settlement.application.coordinator import SettlementCoordinator

logger = logging.getLogger("pts.worker")


async def run_worker() -> None:
    # The database is the source of truth: unreachable at startup is fatal.
    # Redis is not; the push consumer keeps reconnecting and the poller covers for it.
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    coordinator = SettlementCoordinator(async_session_factory)
    queue = JobQueue(await get_redis(), settings.SETTLEMENT_QUEUE_KEY)
    consumer = PushConsumer(
        queue,
        coordinator,
        shutdown,
        block_timeout_seconds=settings.PUSH_BLOCK_TIMEOUT_SECONDS,
        backoff_seconds=settings.PUSH_BACKOFF_SECONDS,
    )
    poller = JobPoller(
        async_session_factory,
        coordinator,
        shutdown,
        interval_seconds=settings.POLL_INTERVAL_SECONDS,
        batch_size=settings.POLL_BATCH_SIZE,
        staleness_seconds=settings.STALENESS_THRESHOLD_SECONDS,
        max_attempts=settings.MAX_SETTLEMENT_ATTEMPTS,
    )

    logger.info(
        "Settlement worker started (fee=%dbps, staleness=%.0fs)",
        settings.FEE_RATE_BPS, settings.STALENESS_THRESHOLD_SECONDS,
    )
    try:
        await asyncio.gather(consumer.run(), poller.run())
    finally:
        await engine.dispose()
        await close_redis()
        logger.info("Settlement worker shut down")


def main() -> None:
    configure_logging()
    try:
        uvloop.run(run_worker())
    except (OSError, SQLAlchemyError):
        logger.critical("Settlement worker could not reach the database", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
