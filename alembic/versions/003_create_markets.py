"""003: create markets and market_options tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id                  BIGSERIAL       PRIMARY KEY,
            title               VARCHAR(255)    NOT NULL DEFAULT '',
            status              VARCHAR(20)     NOT NULL DEFAULT 'open',
            result_option_id    BIGINT,
            resolved_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_status CHECK (status IN ('open', 'resolved')),
            CONSTRAINT ck_markets_resolved_has_result CHECK (
                status = 'open' OR (result_option_id IS NOT NULL AND resolved_at IS NOT NULL)
            )
        );
    """)
    op.execute("""
        CREATE TABLE market_options (
            id          BIGSERIAL       PRIMARY KEY,
            market_id   BIGINT          NOT NULL REFERENCES markets (id),
            label       VARCHAR(255)    NOT NULL DEFAULT '',
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_market_options_market ON market_options (market_id);")
    op.execute("""
        ALTER TABLE markets
            ADD CONSTRAINT fk_markets_result_option
            FOREIGN KEY (result_option_id) REFERENCES market_options (id);
    """)
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("ALTER TABLE markets DROP CONSTRAINT IF EXISTS fk_markets_result_option;")
    op.execute("DROP TABLE IF EXISTS market_options CASCADE;")
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
