"""Shared entry point for both delivery paths."""

import asyncio
import logging

from src.pts_common.errors import SettlementJobNotFoundError
from src.pts_settlement.application.coordinator import SettlementCoordinator
from src.pts_settlement.domain.models import SettlementResult

logger = logging.getLogger(__name__)


async def dispatch_job(
    coordinator: SettlementCoordinator, job_id: int, source: str
) -> SettlementResult | None:
    """Run settle(job_id); per-job errors are logged and never escape the loop."""
    try:
        return await coordinator.settle(job_id)
    except SettlementJobNotFoundError:
        logger.warning("[%s] settlement job %s not found; dropping", source, job_id)
    except Exception:
        logger.exception(
            "[%s] settlement job %s could not be processed; poll path will retry",
            source, job_id,
        )
    return None


async def wait_for_shutdown(shutdown: asyncio.Event, timeout: float) -> bool:
    """Sleep up to `timeout` seconds, waking early on shutdown. Returns shutdown state."""
    try:
        await asyncio.wait_for(shutdown.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        pass
    return shutdown.is_set()
