"""FeeAccountResolver: owned, time-bounded cache of the platform fee account id.

One instance per worker/app, passed to whoever needs it. A configured id
always wins; otherwise the lowest-id account flagged is_fee_account is looked
up and cached for `ttl_seconds`. Call invalidate() after reassigning the flag.
"""

import logging
import time
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_common.errors import FeeAccountNotConfiguredError
from src.pts_ledger.domain.repository import LedgerRepositoryProtocol

logger = logging.getLogger(__name__)


class FeeAccountResolver:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol,
        configured_id: int | None = None,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repo = repo
        self._configured_id = configured_id
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached_id: int | None = None
        self._fetched_at: float | None = None

    async def get(self, db: AsyncSession) -> int:
        if self._configured_id is not None:
            return self._configured_id
        now = self._clock()
        if (
            self._cached_id is not None
            and self._fetched_at is not None
            and now - self._fetched_at < self._ttl
        ):
            return self._cached_id

        account_id = await self._repo.find_fee_account_id(db)
        if account_id is None:
            raise FeeAccountNotConfiguredError()
        if account_id != self._cached_id:
            logger.info("Platform fee account resolved to %s", account_id)
        self._cached_id = account_id
        self._fetched_at = now
        return account_id

    def invalidate(self) -> None:
        self._cached_id = None
        self._fetched_at = None
