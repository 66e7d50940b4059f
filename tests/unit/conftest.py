"""In-memory transactional fake of the settlement and ledger stores.

FakeStore holds the rows; FakeSession gives each `async with db.begin()` block
row locks (released at transaction end) and an undo log replayed on rollback.
Every repository call yields to the event loop once so concurrent settle()
calls interleave the way two workers would against PostgreSQL.
"""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from itertools import count
from typing import Any

import pytest

from src.pts_audit.domain.models import AuditRecord, LedgerEntry
from src.pts_common.enums import MarketStatus, PositionStatus, SettlementJobStatus
from src.pts_common.errors import InternalError
from src.pts_ledger.application.fee_account import FeeAccountResolver
from src.pts_ledger.application.service import LedgerService
from src.pts_ledger.domain.models import Account, FeeSummary
from src.pts_settlement.application.coordinator import SettlementCoordinator
from src.pts_settlement.domain.models import Market, Position, SettlementJob

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)

_MISSING = object()


class FakeStore:
    def __init__(self) -> None:
        self.accounts: dict[int, Account] = {}
        self.markets: dict[int, Market] = {}
        self.options: dict[int, int] = {}  # option id -> market id
        self.positions: dict[int, Position] = {}
        self.jobs: dict[int, SettlementJob] = {}
        self.entries: list[LedgerEntry] = []
        self.locks: dict[tuple[str, int], asyncio.Lock] = {}
        self.fail_on: dict[str, Exception] = {}  # op name -> error raised once
        self.now = FIXED_NOW
        self._ids = count(1)

    # --- seeding helpers ---
    def add_account(self, account_id: int, balance: int = 0, is_fee: bool = False) -> None:
        self.accounts[account_id] = Account(
            id=account_id, points_balance=balance, is_fee_account=is_fee
        )

    def add_market(self, market_id: int, option_ids: list[int]) -> None:
        self.markets[market_id] = Market(id=market_id, status=MarketStatus.OPEN)
        for option_id in option_ids:
            self.options[option_id] = market_id

    def add_position(
        self,
        position_id: int,
        market_id: int,
        option_id: int,
        account_id: int,
        stake: int,
        odds: str,
    ) -> None:
        self.positions[position_id] = Position(
            id=position_id,
            market_id=market_id,
            option_id=option_id,
            account_id=account_id,
            stake_points=stake,
            odds_at_purchase=Decimal(odds),
            status=PositionStatus.OPEN,
        )

    def add_job(self, job_id: int, market_id: int, result_option_id: int, **kwargs: Any) -> None:
        self.jobs[job_id] = SettlementJob(
            id=job_id,
            market_id=market_id,
            result_option_id=result_option_id,
            status=kwargs.pop("status", SettlementJobStatus.QUEUED),
            created_at=FIXED_NOW,
            **kwargs,
        )

    def balance(self, account_id: int) -> int:
        return self.accounts[account_id].points_balance

    def entries_for(self, action: str) -> list[LedgerEntry]:
        return [e for e in self.entries if e.action == action]

    def next_id(self) -> int:
        return next(self._ids)


class _Transaction:
    def __init__(self, session: "FakeSession") -> None:
        self._session = session

    async def __aenter__(self) -> "_Transaction":
        self._session.undo = []
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> bool:
        if exc_type is not None:
            for restore in reversed(self._session.undo):
                restore()
        self._session.release_locks()
        return False


class FakeSession:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.undo: list[Any] = []
        self._held: list[asyncio.Lock] = []
        self._held_keys: set[tuple[str, int]] = set()

    def begin(self) -> _Transaction:
        return _Transaction(self)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        self.release_locks()
        return False

    async def commit(self) -> None:
        self.undo = []
        self.release_locks()

    async def rollback(self) -> None:
        for restore in reversed(self.undo):
            restore()
        self.undo = []
        self.release_locks()

    async def lock(self, kind: str, row_id: int) -> None:
        key = (kind, row_id)
        if key in self._held_keys:
            return
        lock = self.store.locks.setdefault(key, asyncio.Lock())
        await lock.acquire()
        self._held.append(lock)
        self._held_keys.add(key)

    def release_locks(self) -> None:
        for lock in self._held:
            lock.release()
        self._held = []
        self._held_keys = set()

    def put(self, table: dict, key: int, row: Any) -> None:
        old = table.get(key, _MISSING)

        def restore() -> None:
            if old is _MISSING:
                table.pop(key, None)
            else:
                table[key] = old

        self.undo.append(restore)
        table[key] = row

    def append_entry(self, entry: LedgerEntry) -> None:
        self.store.entries.append(entry)
        self.undo.append(lambda: self.store.entries.remove(entry))


async def _step(db: FakeSession, op: str) -> None:
    await asyncio.sleep(0)
    error = db.store.fail_on.pop(op, None)
    if error is not None:
        raise error


class FakeSettlementRepository:
    async def create_job(self, db, market_id, result_option_id, resolved_by):
        await _step(db, "create_job")
        job = SettlementJob(
            id=db.store.next_id() + 1000,
            market_id=market_id,
            result_option_id=result_option_id,
            status=SettlementJobStatus.QUEUED,
            resolved_by=resolved_by,
            created_at=FIXED_NOW,
        )
        db.put(db.store.jobs, job.id, job)
        return job

    async def get_job(self, db, job_id):
        await _step(db, "get_job")
        return db.store.jobs.get(job_id)

    async def lock_job(self, db, job_id):
        await _step(db, "lock_job")
        if job_id not in db.store.jobs:
            return None
        await db.lock("job", job_id)
        return db.store.jobs[job_id]

    async def claim_job(self, db, job_id, started_at):
        await _step(db, "claim_job")
        job = db.store.jobs[job_id]
        if job.status == SettlementJobStatus.COMPLETED:
            raise InternalError(f"claim of completed job {job_id}")
        db.put(db.store.jobs, job_id, replace(
            job,
            status=SettlementJobStatus.PROCESSING,
            attempts=job.attempts + 1,
            started_at=started_at,
            completed_at=None,
            error_message=None,
        ))

    async def complete_job(self, db, job_id, completed_at):
        await _step(db, "complete_job")
        job = db.store.jobs[job_id]
        if job.status != SettlementJobStatus.PROCESSING:
            raise InternalError(f"complete of job {job_id} in {job.status}")
        db.put(db.store.jobs, job_id, replace(
            job, status=SettlementJobStatus.COMPLETED, completed_at=completed_at
        ))

    async def fail_job(self, db, job_id, attempts, error_message):
        await _step(db, "fail_job")
        job = db.store.jobs.get(job_id)
        if job is None or job.status != SettlementJobStatus.PROCESSING or job.attempts != attempts:
            return False
        db.put(db.store.jobs, job_id, replace(
            job, status=SettlementJobStatus.FAILED, error_message=error_message
        ))
        return True

    async def list_retryable_job_ids(self, db, limit, stale_before, max_attempts):
        await _step(db, "list_retryable_job_ids")
        ids = []
        for job in sorted(db.store.jobs.values(), key=lambda j: (j.created_at, j.id)):
            if max_attempts and job.attempts >= max_attempts:
                continue
            if job.status in (SettlementJobStatus.QUEUED, SettlementJobStatus.FAILED) or (
                job.status == SettlementJobStatus.PROCESSING
                and job.started_at is not None
                and job.started_at < stale_before
            ):
                ids.append(job.id)
        return ids[:limit]

    async def get_market(self, db, market_id):
        await _step(db, "get_market")
        return db.store.markets.get(market_id)

    async def lock_market(self, db, market_id):
        await _step(db, "lock_market")
        if market_id not in db.store.markets:
            return None
        await db.lock("market", market_id)
        return db.store.markets[market_id]

    async def option_belongs_to_market(self, db, option_id, market_id):
        await _step(db, "option_belongs_to_market")
        return db.store.options.get(option_id) == market_id

    async def resolve_market(self, db, market_id, result_option_id, resolved_at):
        await _step(db, "resolve_market")
        market = db.store.markets[market_id]
        if market.status != MarketStatus.OPEN:
            raise InternalError(f"market {market_id} already resolved")
        db.put(db.store.markets, market_id, replace(
            market,
            status=MarketStatus.RESOLVED,
            result_option_id=result_option_id,
            resolved_at=resolved_at,
        ))

    async def lock_open_positions(self, db, market_id):
        await _step(db, "lock_open_positions")
        rows = sorted(
            (
                p for p in db.store.positions.values()
                if p.market_id == market_id and p.status == PositionStatus.OPEN
            ),
            key=lambda p: (p.account_id, p.id),
        )
        for row in rows:
            await db.lock("position", row.id)
        return rows

    async def settle_position(self, db, position_id, payout_points, settled_at):
        await _step(db, "settle_position")
        position = db.store.positions[position_id]
        if position.status != PositionStatus.OPEN:
            raise InternalError(f"position {position_id} already settled")
        db.put(db.store.positions, position_id, replace(
            position, status=PositionStatus.SETTLED, payout_points=payout_points
        ))


class FakeLedgerRepository:
    async def get_account(self, db, account_id):
        await _step(db, "get_account")
        return db.store.accounts.get(account_id)

    async def lock_account(self, db, account_id):
        await _step(db, "lock_account")
        if account_id not in db.store.accounts:
            return None
        await db.lock("account", account_id)
        return db.store.accounts[account_id]

    async def lock_accounts(self, db, account_ids):
        locked = []
        for account_id in sorted(set(account_ids)):
            account = await self.lock_account(db, account_id)
            if account is not None:
                locked.append(account)
        return locked

    async def set_balance(self, db, account_id, points_balance):
        await _step(db, "set_balance")
        if points_balance < 0:
            raise InternalError("points_balance check violated")
        account = db.store.accounts[account_id]
        db.put(db.store.accounts, account_id, replace(account, points_balance=points_balance))

    async def find_fee_account_id(self, db):
        await _step(db, "find_fee_account_id")
        fee_ids = sorted(a.id for a in db.store.accounts.values() if a.is_fee_account)
        return fee_ids[0] if fee_ids else None

    async def list_entries(self, db, account_id, cursor_id, limit, action):
        await _step(db, "list_entries")
        rows = [
            e for e in reversed(db.store.entries)
            if e.target_account_id == account_id
            and (cursor_id is None or e.id < cursor_id)
            and (action is None or e.action == action)
        ]
        return rows[:limit]

    async def fee_summary(self, db, since, until):
        await _step(db, "fee_summary")
        rows = [e for e in db.store.entries if e.action.startswith("fee_") and e.points_delta]
        return FeeSummary(total_fees=sum(e.points_delta for e in rows), entries=len(rows))


class FakeRecorder:
    async def record(self, db, record: AuditRecord) -> LedgerEntry:
        await _step(db, "record")
        entry = LedgerEntry(
            id=db.store.next_id(),
            action=record.action,
            reason=record.reason,
            actor_account_id=record.actor_account_id,
            target_account_id=record.target_account_id,
            points_delta=record.points_delta,
            points_before=record.points_before,
            points_after=record.points_after,
            related_entity_type=record.related_entity_type,
            related_entity_id=record.related_entity_id,
            metadata=record.metadata,
            created_at=FIXED_NOW,
        )
        db.append_entry(entry)
        return entry


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settlement_repo() -> FakeSettlementRepository:
    return FakeSettlementRepository()


@pytest.fixture
def make_coordinator(store: FakeStore, settlement_repo: FakeSettlementRepository):
    """Build a SettlementCoordinator wired to the in-memory store."""

    def _build(
        now: datetime = FIXED_NOW,
        fee_bps: int = 200,
        staleness_seconds: float = 900.0,
        max_attempts: int = 0,
        fee_account_id: int | None = None,
    ) -> SettlementCoordinator:
        ledger_repo = FakeLedgerRepository()
        recorder = FakeRecorder()
        return SettlementCoordinator(
            lambda: FakeSession(store),
            repo=settlement_repo,
            ledger=LedgerService(repo=ledger_repo, recorder=recorder),
            recorder=recorder,
            fee_accounts=FeeAccountResolver(ledger_repo, configured_id=fee_account_id),
            fee_bps=fee_bps,
            staleness_seconds=staleness_seconds,
            max_attempts=max_attempts,
            clock=lambda: now,
        )

    return _build


@pytest.fixture
def session_factory(store: FakeStore):
    return lambda: FakeSession(store)
