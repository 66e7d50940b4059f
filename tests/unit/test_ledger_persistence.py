"""Unit tests for LedgerRepository using MagicMock AsyncSession."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.pts_common.errors import InternalError
from src.pts_ledger.infrastructure.persistence import LedgerRepository


def _make_account_row(account_id: int = 1, balance: int = 500, is_fee: bool = False):
    row = MagicMock()
    row.id = account_id
    row.points_balance = balance
    row.is_fee_account = is_fee
    row.created_at = datetime.now(UTC)
    row.updated_at = datetime.now(UTC)
    return row


def _result(fetchone=None, fetchall=None, rowcount: int = 1) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    result.rowcount = rowcount
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestAccounts:
    async def test_get_account_found(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row(4, 900, True)))

        account = await LedgerRepository().get_account(db, 4)

        assert account is not None
        assert account.id == 4
        assert account.points_balance == 900
        assert account.is_fee_account is True

    async def test_lock_account_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))

        assert await LedgerRepository().lock_account(db, 4) is None
        assert "FOR UPDATE" in str(db.execute.call_args.args[0])

    async def test_lock_accounts_ascending_and_deduplicated(self, db) -> None:
        db.execute = AsyncMock(
            side_effect=[
                _result(_make_account_row(2)),
                _result(_make_account_row(5)),
                _result(None),
            ]
        )

        locked = await LedgerRepository().lock_accounts(db, [9, 5, 2, 5])

        locked_ids = [c.args[1]["account_id"] for c in db.execute.call_args_list]
        assert locked_ids == [2, 5, 9]
        assert [a.id for a in locked] == [2, 5]

    async def test_set_balance(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(rowcount=1))

        await LedgerRepository().set_balance(db, 3, 150)

        assert db.execute.call_args.args[1] == {"account_id": 3, "points_balance": 150}

    async def test_set_balance_missing_row_raises(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(rowcount=0))

        with pytest.raises(InternalError):
            await LedgerRepository().set_balance(db, 3, 150)

    async def test_find_fee_account_id(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(_make_account_row(99)))

        assert await LedgerRepository().find_fee_account_id(db) == 99

    async def test_find_fee_account_id_none(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(None))

        assert await LedgerRepository().find_fee_account_id(db) is None


class TestEntries:
    async def test_list_entries_binds_filters(self, db) -> None:
        row = MagicMock()
        row.id = 8
        row.actor_account_id = None
        row.target_account_id = 1
        row.action = "bet_payout"
        row.reason = "bet_resolve"
        row.points_delta = 10
        row.points_before = 0
        row.points_after = 10
        row.related_entity_type = "market"
        row.related_entity_id = 3
        row.metadata = None
        row.created_at = datetime.now(UTC)
        db.execute = AsyncMock(return_value=_result(fetchall=[row]))

        entries = await LedgerRepository().list_entries(db, 1, 20, 11, "bet_payout")

        assert [e.id for e in entries] == [8]
        assert db.execute.call_args.args[1] == {
            "account_id": 1,
            "cursor_id": 20,
            "limit": 11,
            "action": "bet_payout",
        }

    async def test_fee_summary_uses_fee_prefix(self, db) -> None:
        row = MagicMock()
        row.total_fees = 12
        row.entries = 3
        db.execute = AsyncMock(return_value=_result(row))

        summary = await LedgerRepository().fee_summary(db, None, None)

        assert (summary.total_fees, summary.entries) == (12, 3)
        assert db.execute.call_args.args[1]["prefix"] == "fee_"
