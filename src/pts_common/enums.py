"""Global enums — must match DB CHECK constraints exactly.

Ref: alembic/versions/003_create_markets.py, 004_create_positions.py,
     005_create_settlement_jobs.py
"""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class PositionStatus(str, Enum):
    OPEN = "open"
    SETTLED = "settled"


class SettlementJobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class LedgerAction(str, Enum):
    # Settlement (per account)
    BET_PAYOUT = "bet_payout"
    FEE_BET_RESOLVE = "fee_bet_resolve"
    # Settlement (job level, no points fields)
    BET_RESOLVE = "bet_resolve"
    SETTLEMENT_FAILED = "settlement_failed"
    # Manual admin adjustments
    ADMIN_POINTS_CREDIT = "admin_points_credit"
    ADMIN_POINTS_DEBIT = "admin_points_debit"
    ADMIN_POINTS_DEBIT_REJECTED = "admin_points_debit_rejected"


# Every fee-bearing action starts with this prefix (fee summary query relies on it)
FEE_ACTION_PREFIX = "fee_"


class SettleOutcome(str, Enum):
    """What a single settle(job_id) call ended up doing."""

    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    ALREADY_RESOLVED = "already_resolved"
    IN_PROGRESS = "in_progress"
    SUPERSEDED = "superseded"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    FAILED = "failed"
