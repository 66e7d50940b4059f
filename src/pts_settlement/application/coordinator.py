"""SettlementCoordinator — settle(job_id), safe under duplicate and concurrent delivery.

Two transactions per attempt:

  1. Claim: lock the job row, apply the idempotency guard, mark it
     processing and bump attempts. Committed on its own so a worker crash
     afterwards leaves the job `processing` until the staleness threshold
     lets another worker reclaim it.
  2. Effects: re-lock the job and confirm the claim is still ours (same
     attempts counter), then settle positions, credit accounts through the
     LedgerService, resolve the market, audit, and complete the job. All or
     nothing.

If (2) raises, it is rolled back and a third short transaction marks the job
failed and audits the failure. The attempts bump from (1) survives.

Lock order: job -> market -> positions (account_id asc) -> accounts (id asc).
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.pts_audit.domain.models import AuditRecord
from src.pts_audit.infrastructure.recorder import AuditRecorder
from src.pts_common.datetime_utils import seconds_since, utc_now
from src.pts_common.enums import (
    LedgerAction,
    MarketStatus,
    SettleOutcome,
    SettlementJobStatus,
)
from src.pts_common.errors import (
    AppError,
    SettlementJobNotFoundError,
    SettlementValidationError,
)
from src.pts_ledger.application.fee_account import FeeAccountResolver
from src.pts_ledger.application.service import LedgerService
from src.pts_ledger.domain.models import RelatedEntity
from src.pts_settlement.domain.models import SettlementJob, SettlementPlan, SettlementResult
from src.pts_settlement.domain.payout import plan_settlement
from src.pts_settlement.domain.repository import SettlementRepositoryProtocol
from src.pts_settlement.infrastructure.persistence import SettlementRepository

logger = logging.getLogger(__name__)

_MAX_ERROR_LENGTH = 1000
_MARKET_ENTITY = "market"
_JOB_ENTITY = "settlement_job"


def _error_message(exc: Exception) -> str:
    message = exc.message if isinstance(exc, AppError) else f"{type(exc).__name__}: {exc}"
    return message[:_MAX_ERROR_LENGTH]


class SettlementCoordinator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repo: SettlementRepositoryProtocol | None = None,
        ledger: LedgerService | None = None,
        recorder: AuditRecorder | None = None,
        fee_accounts: FeeAccountResolver | None = None,
        fee_bps: int = settings.FEE_RATE_BPS,
        staleness_seconds: float = settings.STALENESS_THRESHOLD_SECONDS,
        max_attempts: int = settings.MAX_SETTLEMENT_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._repo: SettlementRepositoryProtocol = repo or SettlementRepository()
        self._recorder = recorder or AuditRecorder()
        self._ledger = ledger or LedgerService(recorder=self._recorder)
        self._fee_accounts = fee_accounts or FeeAccountResolver(
            self._ledger.repo,
            configured_id=settings.PLATFORM_FEE_ACCOUNT_ID,
            ttl_seconds=settings.FEE_ACCOUNT_CACHE_TTL_SECONDS,
        )
        self._fee_bps = fee_bps
        self._staleness_seconds = staleness_seconds
        self._max_attempts = max_attempts
        self._clock = clock

    async def settle(self, job_id: int) -> SettlementResult:
        """Settle one job. Safe to call any number of times, from any worker.

        Raises:
            SettlementJobNotFoundError: no such job (terminal).
            sqlalchemy.exc.DBAPIError: infra failure before the claim, or while
                recording a failure; the job is retried by the poll path.
        """
        async with self._session_factory() as db:
            claim = await self._claim(db, job_id)
            if isinstance(claim, SettlementResult):
                return claim
            attempts = claim

            try:
                async with db.begin():
                    result = await self._settle_claimed(db, job_id, attempts)
            except Exception as exc:
                message = _error_message(exc)
                logger.warning(
                    "Settlement job %s failed on attempt %d: %s", job_id, attempts, message
                )
                await self._record_failure(db, job_id, attempts, message)
                return SettlementResult(job_id=job_id, outcome=SettleOutcome.FAILED, error=message)

        logger.info(
            "Settlement job %s finished: %s (market=%s, total_fees=%d)",
            job_id, result.outcome.value, result.market_id, result.total_fees,
        )
        return result

    async def _claim(self, db: AsyncSession, job_id: int) -> SettlementResult | int:
        """Returns the new attempts counter on a successful claim, else a no-op result."""
        async with db.begin():
            job = await self._repo.lock_job(db, job_id)
            if job is None:
                raise SettlementJobNotFoundError(job_id)

            if job.status == SettlementJobStatus.COMPLETED:
                logger.debug("Settlement job %s already completed", job_id)
                return self._noop(job, SettleOutcome.ALREADY_COMPLETED)

            now = self._clock()
            if job.status == SettlementJobStatus.PROCESSING:
                if (
                    job.started_at is not None
                    and seconds_since(job.started_at, now) < self._staleness_seconds
                ):
                    logger.info("Settlement job %s is being processed elsewhere; yielding", job_id)
                    return self._noop(job, SettleOutcome.IN_PROGRESS)
                logger.warning(
                    "Reclaiming stale settlement job %s (started_at=%s, attempts=%d)",
                    job_id, job.started_at, job.attempts,
                )

            if self._max_attempts and job.attempts >= self._max_attempts:
                logger.warning(
                    "Settlement job %s reached max attempts (%d); not claiming",
                    job_id, self._max_attempts,
                )
                return self._noop(job, SettleOutcome.ATTEMPTS_EXHAUSTED)

            await self._repo.claim_job(db, job_id, now)
            return job.attempts + 1

    async def _settle_claimed(self, db: AsyncSession, job_id: int, attempts: int) -> SettlementResult:
        job = await self._repo.lock_job(db, job_id)
        if job is None or job.status != SettlementJobStatus.PROCESSING or job.attempts != attempts:
            logger.warning("Settlement job %s claim %d was superseded", job_id, attempts)
            return SettlementResult(job_id=job_id, outcome=SettleOutcome.SUPERSEDED)

        now = self._clock()
        market = await self._repo.lock_market(db, job.market_id)
        if market is None:
            raise SettlementValidationError(f"market {job.market_id} not found")

        if market.status == MarketStatus.RESOLVED:
            if market.result_option_id != job.result_option_id:
                logger.warning(
                    "Market %s already resolved with option %s; job %s asked for %s",
                    market.id, market.result_option_id, job_id, job.result_option_id,
                )
            await self._repo.complete_job(db, job_id, now)
            return self._noop(job, SettleOutcome.ALREADY_RESOLVED)

        if not await self._repo.option_belongs_to_market(db, job.result_option_id, market.id):
            raise SettlementValidationError(
                f"option {job.result_option_id} does not belong to market {market.id}"
            )

        positions = await self._repo.lock_open_positions(db, market.id)
        plan = plan_settlement(positions, job.result_option_id, self._fee_bps)
        for payout in plan.positions:
            await self._repo.settle_position(db, payout.position_id, payout.net, now)

        await self._credit_accounts(db, job, plan)
        await self._repo.resolve_market(db, market.id, job.result_option_id, now)
        await self._recorder.record(
            db,
            AuditRecord(
                action=LedgerAction.BET_RESOLVE,
                reason="bet_resolve",
                actor_account_id=job.resolved_by,
                related_entity_type=_MARKET_ENTITY,
                related_entity_id=market.id,
                metadata=_summary_metadata(job, plan),
            ),
        )
        await self._repo.complete_job(db, job_id, now)

        return SettlementResult(
            job_id=job_id,
            outcome=SettleOutcome.COMPLETED,
            market_id=market.id,
            payouts=dict(plan.payouts_by_account),
            total_fees=plan.total_fees,
        )

    async def _credit_accounts(self, db: AsyncSession, job: SettlementJob, plan: SettlementPlan) -> None:
        fee_account_id = (
            await self._fee_accounts.get(db) if plan.total_fees > 0 else None
        )
        account_ids = list(plan.payouts_by_account)
        if fee_account_id is not None:
            account_ids.append(fee_account_id)
        # Take every account lock up front, ascending, before the first write
        await self._ledger.repo.lock_accounts(db, account_ids)

        market = RelatedEntity(_MARKET_ENTITY, job.market_id)
        for account_id in sorted(plan.payouts_by_account):
            amount = plan.payouts_by_account[account_id]
            if amount <= 0:
                continue
            await self._ledger.apply_delta(
                db,
                account_id,
                amount,
                LedgerAction.BET_PAYOUT,
                "bet_resolve",
                actor_account_id=job.resolved_by,
                related_entity=market,
                metadata={"jobId": job.id, "fee": plan.fees_by_account.get(account_id, 0)},
            )

        if fee_account_id is not None:
            await self._ledger.apply_delta(
                db,
                fee_account_id,
                plan.total_fees,
                LedgerAction.FEE_BET_RESOLVE,
                "bet_resolve_fee",
                actor_account_id=job.resolved_by,
                related_entity=market,
                metadata={"jobId": job.id, "totalFees": plan.total_fees},
            )

    async def _record_failure(
        self, db: AsyncSession, job_id: int, attempts: int, message: str
    ) -> None:
        async with db.begin():
            if not await self._repo.fail_job(db, job_id, attempts, message):
                logger.warning(
                    "Settlement job %s claim %d superseded before failure was recorded",
                    job_id, attempts,
                )
                return
            await self._recorder.record(
                db,
                AuditRecord(
                    action=LedgerAction.SETTLEMENT_FAILED,
                    reason="settlement_error",
                    related_entity_type=_JOB_ENTITY,
                    related_entity_id=job_id,
                    metadata={"attempts": attempts, "error": message},
                ),
            )

    @staticmethod
    def _noop(job: SettlementJob, outcome: SettleOutcome) -> SettlementResult:
        return SettlementResult(job_id=job.id, outcome=outcome, market_id=job.market_id)


def _summary_metadata(job: SettlementJob, plan: SettlementPlan) -> dict[str, Any]:
    return {
        "jobId": job.id,
        "resultOptionId": job.result_option_id,
        "totalFees": plan.total_fees,
        "payouts": {str(k): v for k, v in sorted(plan.payouts_by_account.items())},
        "fees": {str(k): v for k, v in sorted(plan.fees_by_account.items())},
        "settledPositions": len(plan.positions),
    }
