"""Domain models for pts_audit — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class AuditRecord:
    """One append-only action to record.

    Points fields are set for balance mutations (by the Ledger Service) and
    left None for job-level summaries and rejected attempts.
    """

    action: str
    reason: str | None = None
    actor_account_id: int | None = None
    target_account_id: int | None = None
    points_delta: int | None = None
    points_before: int | None = None
    points_after: int | None = None
    related_entity_type: str | None = None
    related_entity_id: int | None = None
    metadata: dict[str, Any] | None = field(default=None)


@dataclass
class LedgerEntry:
    id: int                              # BIGSERIAL
    action: str                          # LedgerAction value
    reason: str | None = None
    actor_account_id: int | None = None
    target_account_id: int | None = None
    points_delta: int | None = None      # positive=credit negative=debit
    points_before: int | None = None
    points_after: int | None = None      # balance snapshot after op
    related_entity_type: str | None = None
    related_entity_id: int | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None
