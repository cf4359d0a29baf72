"""Shared fixtures: a throwaway SQLite database and a controllable clock."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from domatrend.config import Settings
from domatrend.database import create_all


class FakeClock:
    """Callable clock returning a settable UTC datetime."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2025, 10, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        registry_api_base="https://registry.test",
        registry_api_key="test-key",
        serpapi_enabled=False,
        openai_enabled=False,
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'domatrend.db'}")
    await create_all(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
