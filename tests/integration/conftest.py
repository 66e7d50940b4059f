"""Integration-test fixtures (requires a migrated PostgreSQL: alembic upgrade head).

All integration tests share a single event loop so that the module-level
SQLAlchemy engine pool used by the app stays valid across the session.
Direct database access goes through a NullPool engine of its own.
"""

from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from config.settings import settings
from src.main import app


@dataclass
class SeededMarket:
    """Two bettors on a fresh two-option market plus a queued settlement job."""

    market_id: int
    win_option: int
    lose_option: int
    winner: int
    loser: int
    job_id: int
    fee_account: int
    fee_balance_before: int


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def session_factory() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM ledger_entries LIMIT 1"))
    except (OSError, SQLAlchemyError) as exc:
        await engine.dispose()
        pytest.skip(f"migrated PostgreSQL not reachable at DATABASE_URL: {exc}")
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client(session_factory) -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client; keeps the engine pool on one loop."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _scalar_int(db: AsyncSession, sql: str, **params) -> int:
    result = await db.execute(text(sql), params)
    return int(result.scalar_one())


@pytest_asyncio.fixture(loop_scope="session")
async def seeded(session_factory) -> SeededMarket:
    """Winner stakes 100 at 2.00 on the result option, loser 50 at 3.00 on the other."""
    async with session_factory() as db:
        fee_account = settings.PLATFORM_FEE_ACCOUNT_ID or await _scalar_int(
            db, "SELECT id FROM accounts WHERE is_fee_account ORDER BY id LIMIT 1"
        )
        fee_before = await _scalar_int(
            db, "SELECT points_balance FROM accounts WHERE id = :id", id=fee_account
        )
        winner = await _scalar_int(db, "INSERT INTO accounts DEFAULT VALUES RETURNING id")
        loser = await _scalar_int(db, "INSERT INTO accounts DEFAULT VALUES RETURNING id")
        market_id = await _scalar_int(
            db, "INSERT INTO markets (title) VALUES ('integration') RETURNING id"
        )
        win_option = await _scalar_int(
            db,
            "INSERT INTO market_options (market_id, label) VALUES (:m, 'yes') RETURNING id",
            m=market_id,
        )
        lose_option = await _scalar_int(
            db,
            "INSERT INTO market_options (market_id, label) VALUES (:m, 'no') RETURNING id",
            m=market_id,
        )
        for account, option, stake, odds in (
            (winner, win_option, 100, "2.00"),
            (loser, lose_option, 50, "3.00"),
        ):
            await db.execute(
                text(
                    "INSERT INTO positions"
                    " (market_id, option_id, account_id, stake_points, odds_at_purchase)"
                    " VALUES (:m, :o, :a, :s, CAST(:odds AS NUMERIC))"
                ),
                {"m": market_id, "o": option, "a": account, "s": stake, "odds": odds},
            )
        job_id = await _scalar_int(
            db,
            "INSERT INTO settlement_jobs (market_id, result_option_id, resolved_by)"
            " VALUES (:m, :o, 7) RETURNING id",
            m=market_id, o=win_option,
        )
        await db.commit()
    return SeededMarket(
        market_id=market_id,
        win_option=win_option,
        lose_option=lose_option,
        winner=winner,
        loser=loser,
        job_id=job_id,
        fee_account=fee_account,
        fee_balance_before=fee_before,
    )
