"""006: create ledger_entries table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id                      BIGSERIAL       PRIMARY KEY,
            actor_account_id        BIGINT,
            target_account_id       BIGINT,
            action                  VARCHAR(64)     NOT NULL,
            reason                  VARCHAR(255),
            points_delta            BIGINT,
            points_before           BIGINT,
            points_after            BIGINT,
            related_entity_type     VARCHAR(64),
            related_entity_id       BIGINT,
            metadata                JSONB,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_points_consistent CHECK (
                points_delta IS NULL
                OR points_after = points_before + points_delta
            ),
            CONSTRAINT ck_ledger_after_gte_0 CHECK (points_after IS NULL OR points_after >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_ledger_target_id
        ON ledger_entries (target_account_id, id DESC)
        WHERE target_account_id IS NOT NULL;
    """)
    op.execute("""
        CREATE INDEX idx_ledger_related
        ON ledger_entries (related_entity_type, related_entity_id)
        WHERE related_entity_id IS NOT NULL;
    """)
    op.execute("CREATE INDEX idx_ledger_action_time ON ledger_entries (action, created_at);")
    op.execute("""
        CREATE TRIGGER trg_ledger_entries_append_only
            BEFORE UPDATE OR DELETE ON ledger_entries
            FOR EACH ROW EXECUTE FUNCTION fn_reject_modification();
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Points ledger and audit trail. Append-only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
