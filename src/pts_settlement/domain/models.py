"""Domain models for pts_settlement — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.pts_common.enums import SettleOutcome


@dataclass
class SettlementJob:
    id: int
    market_id: int
    result_option_id: int
    status: str                      # SettlementJobStatus value
    attempts: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    resolved_by: int | None = None   # admin account that requested resolution
    created_at: datetime | None = None


@dataclass
class Market:
    id: int
    status: str                      # MarketStatus value
    result_option_id: int | None = None
    resolved_at: datetime | None = None


@dataclass
class Position:
    id: int
    market_id: int
    option_id: int
    account_id: int
    stake_points: int
    odds_at_purchase: Decimal        # fixed at stake time
    status: str                      # PositionStatus value
    payout_points: int | None = None


@dataclass(frozen=True)
class PositionPayout:
    position_id: int
    account_id: int
    is_winner: bool
    gross: int
    fee: int
    net: int


@dataclass
class SettlementPlan:
    result_option_id: int
    positions: list[PositionPayout] = field(default_factory=list)
    payouts_by_account: dict[int, int] = field(default_factory=dict)   # net, winners only
    fees_by_account: dict[int, int] = field(default_factory=dict)
    total_fees: int = 0

    @property
    def total_gross(self) -> int:
        return sum(p.gross for p in self.positions)

    @property
    def total_net(self) -> int:
        return sum(self.payouts_by_account.values())


@dataclass
class SettlementResult:
    job_id: int
    outcome: SettleOutcome
    market_id: int | None = None
    payouts: dict[int, int] = field(default_factory=dict)
    total_fees: int = 0
    error: str | None = None
