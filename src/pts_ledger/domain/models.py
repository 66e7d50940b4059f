"""Domain models for pts_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    id: int
    points_balance: int          # integer points, never negative
    is_fee_account: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class RelatedEntity:
    """Provenance pointer stored on a ledger entry (e.g. ("market", 42))."""

    entity_type: str
    entity_id: int


@dataclass
class FeeSummary:
    total_fees: int
    entries: int
