"""Pydantic schemas and cursor utilities for the ledger admin API."""

import base64
import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.pts_audit.domain.models import LedgerEntry

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PointsAdjustmentRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Points to credit or debit")
    reason: str = Field("admin_adjustment", min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    account_id: int
    points_balance: int


class AdjustmentResponse(BaseModel):
    account_id: int
    points_balance: int
    points_delta: int
    ledger_entry_id: int


class LedgerEntryItem(BaseModel):
    id: int
    action: str
    reason: str | None
    actor_account_id: int | None
    points_delta: int | None
    points_before: int | None
    points_after: int | None
    related_entity_type: str | None
    related_entity_id: int | None
    metadata: dict[str, Any] | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_entry(cls, e: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=e.id,
            action=e.action,
            reason=e.reason,
            actor_account_id=e.actor_account_id,
            points_delta=e.points_delta,
            points_before=e.points_before,
            points_after=e.points_after,
            related_entity_type=e.related_entity_type,
            related_entity_id=e.related_entity_id,
            metadata=e.metadata,
            created_at=e.created_at.isoformat() if e.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class FeeSummaryResponse(BaseModel):
    total_fees: int
    entries: int
    since: datetime | None = None
    until: datetime | None = None
