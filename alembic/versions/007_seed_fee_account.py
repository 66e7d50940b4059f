"""007: seed platform fee account

Revision ID: 007
Revises: 006
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO accounts (points_balance, is_fee_account)
        SELECT 0, TRUE
        WHERE NOT EXISTS (SELECT 1 FROM accounts WHERE is_fee_account);
    """)


def downgrade() -> None:
    op.execute("""
        DELETE FROM accounts
        WHERE is_fee_account
          AND points_balance = 0
          AND NOT EXISTS (
              SELECT 1 FROM ledger_entries WHERE target_account_id = accounts.id
          );
    """)
