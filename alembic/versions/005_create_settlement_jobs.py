"""005: create settlement_jobs table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE settlement_jobs (
            id                  BIGSERIAL       PRIMARY KEY,
            market_id           BIGINT          NOT NULL REFERENCES markets (id),
            result_option_id    BIGINT          NOT NULL REFERENCES market_options (id),
            status              VARCHAR(20)     NOT NULL DEFAULT 'queued',
            attempts            INT             NOT NULL DEFAULT 0,
            started_at          TIMESTAMPTZ,
            completed_at        TIMESTAMPTZ,
            error_message       TEXT,
            resolved_by         BIGINT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_settlement_jobs_status CHECK (
                status IN ('queued', 'processing', 'completed', 'failed')
            ),
            CONSTRAINT ck_settlement_jobs_attempts_gte_0 CHECK (attempts >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_settlement_jobs_retryable
        ON settlement_jobs (status, created_at)
        WHERE status <> 'completed';
    """)
    op.execute("CREATE INDEX idx_settlement_jobs_market ON settlement_jobs (market_id);")
    op.execute("""
        CREATE TRIGGER trg_settlement_jobs_updated_at
            BEFORE UPDATE ON settlement_jobs
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS settlement_jobs CASCADE;")
