"""Shared test fixtures."""

import os

# Settings() requires JWT_SECRET; set it before any src/config import
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402

from config.settings import settings  # noqa: E402
from src.main import app  # noqa: E402


def make_token(sub: str = "7", is_admin: bool = True, token_type: str = "access", **extra) -> str:
    claims = {
        "sub": sub,
        "type": token_type,
        "exp": datetime.now(UTC) + timedelta(minutes=15),
        **extra,
    }
    if is_admin:
        claims["is_admin"] = True
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
