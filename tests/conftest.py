"""Shared fixtures: a throwaway SQLite database per test and a controllable clock."""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from db.models import Base


class FakeClock:
    """Callable clock the engines read instead of the wall clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime.now(timezone.utc))


@pytest.fixture
def engine(session_factory, clock):
    from engines.workflow import WorkflowEngine
    return WorkflowEngine(session_factory, clock=clock, retry_backoff_seconds=0)


@pytest.fixture
def tracker(session_factory, engine, clock):
    from engines.tracking import LeadTracker
    return LeadTracker(session_factory, engine=engine, clock=clock)
