"""JobQueue: Redis list carrying settlement job ids (LPUSH in, BRPOP out).

Delivery is at-least-once at best: a popped id is gone from Redis even if the
consumer dies before settling it, which is why the poll path exists.
"""

import redis.asyncio as aioredis

from src.pts_settlement.application.schemas import SettlementJobMessage


class JobQueue:
    def __init__(self, redis: aioredis.Redis, key: str) -> None:
        self._redis = redis
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def push(self, job_id: int) -> None:
        await self._redis.lpush(self._key, SettlementJobMessage(job_id=job_id).to_payload())

    async def pop(self, timeout_seconds: int) -> str | None:
        """Block up to timeout_seconds for one raw payload; None on timeout."""
        item = await self._redis.brpop([self._key], timeout=timeout_seconds)
        if item is None:
            return None
        _key, payload = item
        return payload.decode() if isinstance(payload, bytes) else payload

    async def ping(self) -> bool:
        return bool(await self._redis.ping())
