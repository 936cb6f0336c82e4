"""API test fixtures — httpx.AsyncClient, dependency overrides, seeded registry.

Provides an async test client that exercises the full FastAPI app, with the
database dependency overridden to use the per-test in-memory session.
"""

from __future__ import annotations

import contextlib

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from simtrader.api.deps import get_notifier
from simtrader.backtesting.notifications import DatabaseNotifier
from simtrader.common.database import get_db
from simtrader.common.models import AlgorithmModel
from simtrader.common.tokens import issue_access_token
from simtrader.main import app

TEST_USER_ID = "test-user-001"


@pytest_asyncio.fixture
async def seeded_db(db):
    """Session with two approved strategies in the registry."""
    db.add_all(
        [
            AlgorithmModel(
                id="momentum-alpha",
                name="Momentum Alpha",
                category="momentum",
                win_rate=0.6,
                roi=0.05,
                risk_level=2,
            ),
            AlgorithmModel(id="mean-revert", name="Mean Reversion", category="reversion"),
        ]
    )
    await db.commit()
    return db


@pytest_asyncio.fixture
async def client(seeded_db):
    """Async test client with database and notifier dependencies overridden.

    Notices are written through the same session the test inspects.
    """

    async def _override_get_db():
        yield seeded_db

    @contextlib.asynccontextmanager
    async def _seeded_session():
        yield seeded_db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_notifier] = lambda: DatabaseNotifier(_seeded_session)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization header carrying a valid bearer token for TEST_USER_ID."""
    return {"Authorization": f"Bearer {issue_access_token(TEST_USER_ID)}"}


@pytest.fixture
def backtest_payload() -> dict:
    """Wire-format request body: 10 days, $10,000, seeded."""
    return {
        "algorithmId": "momentum-alpha",
        "startDate": "2024-01-01",
        "endDate": "2024-01-11",
        "initialCapital": 10000,
        "seed": 42,
    }
