"""AuditRecorder — appends rows to ledger_entries within the caller's transaction.

The table is append-only (a trigger rejects UPDATE/DELETE). Any failure to
insert propagates so the enclosing unit of work rolls back: an unauditable
mutation must never commit.
"""
import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pts_audit.domain.models import AuditRecord, LedgerEntry
from src.pts_common.errors import InternalError

_INSERT_ENTRY_SQL = text("""
    INSERT INTO ledger_entries
        (actor_account_id, target_account_id, action, reason,
         points_delta, points_before, points_after,
         related_entity_type, related_entity_id, metadata)
    VALUES
        (:actor_account_id, :target_account_id, :action, :reason,
         :points_delta, :points_before, :points_after,
         :related_entity_type, :related_entity_id, CAST(:metadata AS JSONB))
    RETURNING id, actor_account_id, target_account_id, action, reason,
              points_delta, points_before, points_after,
              related_entity_type, related_entity_id, metadata, created_at
""")


def row_to_entry(row: Any) -> LedgerEntry:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return LedgerEntry(
        id=row.id,
        action=row.action,
        reason=row.reason,
        actor_account_id=row.actor_account_id,
        target_account_id=row.target_account_id,
        points_delta=row.points_delta,
        points_before=row.points_before,
        points_after=row.points_after,
        related_entity_type=row.related_entity_type,
        related_entity_id=row.related_entity_id,
        metadata=metadata,
        created_at=row.created_at,
    )


class AuditRecorder:
    async def record(self, db: AsyncSession, record: AuditRecord) -> LedgerEntry:
        if not record.action:
            raise ValueError("Audit record requires an action")
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                "actor_account_id": record.actor_account_id,
                "target_account_id": record.target_account_id,
                "action": record.action,
                "reason": record.reason,
                "points_delta": record.points_delta,
                "points_before": record.points_before,
                "points_after": record.points_after,
                "related_entity_type": record.related_entity_type,
                "related_entity_id": record.related_entity_id,
                "metadata": (
                    json.dumps(record.metadata, sort_keys=True)
                    if record.metadata is not None
                    else None
                ),
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Ledger insert returned no row")
        return row_to_entry(row)
