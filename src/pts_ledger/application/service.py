"""LedgerService — the only code path that mutates accounts.points_balance.

apply_delta() runs inside the caller's transaction (settlement coordinator or
the admin adjustment methods below). Admin adjustments own their transaction
with explicit commit/rollback, like any other request-scoped write.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pts_audit.domain.models import AuditRecord, LedgerEntry
from src.pts_audit.infrastructure.recorder import AuditRecorder
from src.pts_common.enums import LedgerAction
from src.pts_common.errors import (
    AccountNotFoundError,
    FeeAccountProtectedError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from src.pts_ledger.application.schemas import (
    AdjustmentResponse,
    BalanceResponse,
    FeeSummaryResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.pts_ledger.domain.models import RelatedEntity
from src.pts_ledger.domain.repository import LedgerRepositoryProtocol
from src.pts_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class LedgerService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        recorder: AuditRecorder | None = None,
        fee_account_id: int | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._recorder = recorder or AuditRecorder()
        self._fee_account_id = (
            fee_account_id if fee_account_id is not None else settings.PLATFORM_FEE_ACCOUNT_ID
        )

    @property
    def repo(self) -> LedgerRepositoryProtocol:
        return self._repo

    async def apply_delta(
        self,
        db: AsyncSession,
        account_id: int,
        delta: int,
        action: str,
        reason: str | None,
        actor_account_id: int | None = None,
        related_entity: RelatedEntity | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Lock the account, apply a signed delta, append a ledger entry.

        Raises:
            AccountNotFoundError: no such account.
            InsufficientBalanceError: the balance would go negative; nothing
                is written and the caller's transaction must be aborted.
        """
        account = await self._repo.lock_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        before = account.points_balance
        after = before + delta
        if after < 0:
            logger.warning(
                "Rejected delta %d on account %s: balance %d (action=%s)",
                delta, account_id, before, action,
            )
            raise InsufficientBalanceError(-delta, before)

        await self._repo.set_balance(db, account_id, after)
        return await self._recorder.record(
            db,
            AuditRecord(
                action=action,
                reason=reason,
                actor_account_id=actor_account_id,
                target_account_id=account_id,
                points_delta=delta,
                points_before=before,
                points_after=after,
                related_entity_type=related_entity.entity_type if related_entity else None,
                related_entity_id=related_entity.entity_id if related_entity else None,
                metadata=metadata,
            ),
        )

    async def get_balance(self, db: AsyncSession, account_id: int) -> BalanceResponse:
        account = await self._repo.get_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return BalanceResponse(account_id=account.id, points_balance=account.points_balance)

    async def credit_points(
        self,
        db: AsyncSession,
        account_id: int,
        amount: int,
        reason: str,
        actor_account_id: int | None,
    ) -> AdjustmentResponse:
        if amount <= 0:
            raise InvalidAmountError(amount)
        try:
            await self._lock_adjustable_account(db, account_id)
            entry = await self.apply_delta(
                db, account_id, amount, LedgerAction.ADMIN_POINTS_CREDIT, reason,
                actor_account_id=actor_account_id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return _adjustment_response(account_id, entry)

    async def debit_points(
        self,
        db: AsyncSession,
        account_id: int,
        amount: int,
        reason: str,
        actor_account_id: int | None,
    ) -> AdjustmentResponse:
        if amount <= 0:
            raise InvalidAmountError(amount)
        try:
            await self._lock_adjustable_account(db, account_id)
            entry = await self.apply_delta(
                db, account_id, -amount, LedgerAction.ADMIN_POINTS_DEBIT, reason,
                actor_account_id=actor_account_id,
            )
            await db.commit()
        except InsufficientBalanceError as exc:
            await db.rollback()
            await self._record_rejected_debit(db, account_id, amount, reason, actor_account_id, exc)
            raise
        except Exception:
            await db.rollback()
            raise
        return _adjustment_response(account_id, entry)

    async def _lock_adjustable_account(self, db: AsyncSession, account_id: int) -> None:
        """Admin adjustments never touch the platform fee account."""
        account = await self._repo.lock_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.is_fee_account or account_id == self._fee_account_id:
            logger.warning("Rejected admin adjustment on fee account %s", account_id)
            raise FeeAccountProtectedError(account_id)

    async def _record_rejected_debit(
        self,
        db: AsyncSession,
        account_id: int,
        amount: int,
        reason: str,
        actor_account_id: int | None,
        exc: InsufficientBalanceError,
    ) -> None:
        """Commit an audit row for the rejected attempt in its own transaction."""
        try:
            await self._recorder.record(
                db,
                AuditRecord(
                    action=LedgerAction.ADMIN_POINTS_DEBIT_REJECTED,
                    reason=reason,
                    actor_account_id=actor_account_id,
                    target_account_id=account_id,
                    metadata={"amount": amount, "error": exc.message},
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Failed to audit rejected debit on account %s", account_id)
            raise

    async def list_ledger(
        self,
        db: AsyncSession,
        account_id: int,
        cursor: str | None,
        limit: int,
        action: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, account_id, cursor_id, limit + 1, action)
        has_more = len(entries) > limit
        page = entries[:limit]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_entry(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def fee_summary(
        self,
        db: AsyncSession,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> FeeSummaryResponse:
        summary = await self._repo.fee_summary(db, since, until)
        return FeeSummaryResponse(
            total_fees=summary.total_fees, entries=summary.entries, since=since, until=until
        )


def _adjustment_response(account_id: int, entry: LedgerEntry) -> AdjustmentResponse:
    return AdjustmentResponse(
        account_id=account_id,
        points_balance=entry.points_after or 0,
        points_delta=entry.points_delta or 0,
        ledger_entry_id=entry.id,
    )
