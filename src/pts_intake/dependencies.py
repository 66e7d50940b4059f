"""FastAPI dependency: the settlement JobQueue bound to the shared Redis pool."""

from config.settings import settings
from src.pts_common.redis_client import get_redis
from src.pts_intake.queue import JobQueue


async def get_job_queue() -> JobQueue:
    return JobQueue(await get_redis(), settings.SETTLEMENT_QUEUE_KEY)
