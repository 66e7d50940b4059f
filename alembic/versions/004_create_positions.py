"""004: create positions table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id                  BIGSERIAL       PRIMARY KEY,
            market_id           BIGINT          NOT NULL REFERENCES markets (id),
            option_id           BIGINT          NOT NULL REFERENCES market_options (id),
            account_id          BIGINT          NOT NULL REFERENCES accounts (id),
            stake_points        BIGINT          NOT NULL,
            odds_at_purchase    NUMERIC(7, 2)   NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'open',
            payout_points       BIGINT,
            settled_at          TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_positions_stake_gt_0  CHECK (stake_points > 0),
            CONSTRAINT ck_positions_odds_gt_0   CHECK (odds_at_purchase > 0),
            CONSTRAINT ck_positions_status      CHECK (status IN ('open', 'settled')),
            CONSTRAINT ck_positions_payout_gte_0 CHECK (payout_points IS NULL OR payout_points >= 0),
            CONSTRAINT ck_positions_settled_has_payout CHECK (
                status = 'open' OR payout_points IS NOT NULL
            )
        );
    """)
    op.execute("""
        CREATE INDEX idx_positions_market_open
        ON positions (market_id, account_id, id)
        WHERE status = 'open';
    """)
    op.execute("CREATE INDEX idx_positions_account ON positions (account_id);")
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
