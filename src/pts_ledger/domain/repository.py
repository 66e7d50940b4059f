"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock (or an in-memory fake) that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_audit.domain.models import LedgerEntry
from src.pts_ledger.domain.models import Account, FeeSummary


class LedgerRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, account_id: int) -> Account | None: ...

    async def lock_account(self, db: AsyncSession, account_id: int) -> Account | None: ...

    async def lock_accounts(self, db: AsyncSession, account_ids: list[int]) -> list[Account]: ...

    async def set_balance(self, db: AsyncSession, account_id: int, points_balance: int) -> None: ...

    async def find_fee_account_id(self, db: AsyncSession) -> int | None: ...

    async def list_entries(
        self,
        db: AsyncSession,
        account_id: int,
        cursor_id: int | None,
        limit: int,
        action: str | None,
    ) -> list[LedgerEntry]: ...

    async def fee_summary(
        self, db: AsyncSession, since: datetime | None, until: datetime | None
    ) -> FeeSummary: ...
