"""Root test configuration — shared fixtures for all test modules.

IMPORTANT: Environment variables are set BEFORE any simtrader imports
so that config.py can load Settings without a .env file.
"""

from __future__ import annotations

import asyncio
import os

from cryptography.fernet import Fernet

_TEST_TOKEN_KEY = Fernet.generate_key().decode()
os.environ.setdefault("AUTH_TOKEN_KEY", _TEST_TOKEN_KEY)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")  # In-memory SQLite
os.environ.setdefault("ENVIRONMENT", "testing")

# Now safe to import simtrader modules
from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from simtrader.backtesting.registry import StaticProfileResolver
from simtrader.backtesting.report import CompletionNotice
from simtrader.backtesting.schemas import AlgorithmProfile, BacktestRequest
from simtrader.common.config import Settings, get_settings
from simtrader.common.models import Base

# ─── Clear cached settings so test env vars are used ───
get_settings.cache_clear()


# ─── Test Database ───


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the per-test database."""
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """Async session bound to the per-test database."""
    async with session_factory() as session:
        yield session


# ─── Test Settings ───


@pytest.fixture
def test_settings() -> Settings:
    return get_settings()


# ─── Collaborator Fakes ───


class RecordingNotifier:
    """Notifier that keeps every notice it is sent."""

    def __init__(self) -> None:
        self.sent: list[CompletionNotice] = []

    async def send(self, notice: CompletionNotice) -> None:
        self.sent.append(notice)


class FailingNotifier:
    """Notifier whose sink is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def send(self, notice: CompletionNotice) -> None:
        self.attempts += 1
        raise ConnectionError("notification sink unavailable")


class SlowNotifier:
    """Notifier that never answers within a short timeout."""

    async def send(self, notice: CompletionNotice) -> None:
        await asyncio.sleep(5)


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def slow_notifier() -> SlowNotifier:
    return SlowNotifier()


# ─── Sample Data Fixtures ───


@pytest.fixture
def sample_profile() -> AlgorithmProfile:
    """A profile matching the registry defaults: 60% win rate, 5% base return."""
    return AlgorithmProfile(
        algorithm_id="momentum-alpha",
        name="Momentum Alpha",
        win_rate=0.6,
        roi=0.05,
        risk_level=2,
    )


@pytest.fixture
def static_resolver(sample_profile: AlgorithmProfile) -> StaticProfileResolver:
    return StaticProfileResolver([sample_profile])


@pytest.fixture
def ten_day_request() -> BacktestRequest:
    """2024-01-01 → 2024-01-11 with $10,000 and a fixed seed (30 trades)."""
    return BacktestRequest(
        algorithm_id="momentum-alpha",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 11),
        initial_capital=10_000,
        seed=42,
    )
