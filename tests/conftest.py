"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for Settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.bootstrap import PartnerProgram
from app.models import Base, PartnerStatus
from app.repositories.partner_repository import PartnerRepository
from app.services.points_engine.points_cache import PointsCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def fake_clock():
    """Controllable clock for cache expiry tests."""
    return FakeClock()


@pytest.fixture
def points_cache():
    """Fresh points cache with default limits."""
    return PointsCache()


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Session on the in-memory database."""
    session_maker = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def program(db_session, points_cache):
    """Partner program services bound to the test session."""
    return PartnerProgram.create(db_session, points_cache)


@pytest.fixture
def make_partner(db_session):
    """
    Factory for committed partner profiles.

    Codes and uids are sequential: LP100001/user-1, LP100002/user-2, ...
    """
    counter = itertools.count(1)
    repo = PartnerRepository(db_session)

    async def _make(status: str = PartnerStatus.ACTIVE.value, **overrides):
        n = next(counter)
        data = {
            "partner_code": f"LP{100000 + n}",
            "uid": f"user-{n}",
            "username": f"user{n}",
            "status": status,
        }
        data.update(overrides)
        profile = await repo.create(**data)
        await db_session.commit()
        return profile

    return _make
