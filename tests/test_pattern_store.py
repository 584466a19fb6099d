"""
Tests for the pattern stores in courtbooker/services/pattern_store.py.

The database store runs against an in-memory SQLite database to verify the
upsert and retention SQL.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from courtbooker.models.database import Base, PatternRecord
from courtbooker.models.schemas import BookingPattern, utcnow
from courtbooker.services.pattern_store import DatabasePatternStore, InMemoryPatternStore


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_local(test_engine):
    """Create a sessionmaker bound to the test engine."""
    return sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def store(test_session_local, monkeypatch) -> DatabasePatternStore:
    """Create a DatabasePatternStore that uses the test database."""
    monkeypatch.setattr("courtbooker.models.database.AsyncSessionLocal", test_session_local)
    return DatabasePatternStore(max_age_days=90)


def make_pattern(
    court_id: str = "court-1",
    success_rate: float = 0.5,
    total_attempts: int = 4,
    age_days: int = 0,
) -> BookingPattern:
    return BookingPattern(
        court_id=court_id,
        time_slot="14:00",
        day_of_week=4,
        success_rate=success_rate,
        total_attempts=total_attempts,
        last_updated=utcnow() - timedelta(days=age_days),
    )


class TestDatabasePatternStore:
    """Tests for the SQLAlchemy-backed store."""

    @pytest.mark.asyncio
    async def test_load_empty(self, store: DatabasePatternStore) -> None:
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_save_and_load(self, store: DatabasePatternStore) -> None:
        await store.save([make_pattern("court-1"), make_pattern("court-2", 1.0, 3)])

        loaded = {p.court_id: p for p in await store.load()}

        assert set(loaded) == {"court-1", "court-2"}
        assert loaded["court-2"].success_rate == 1.0
        assert loaded["court-2"].total_attempts == 3
        assert loaded["court-1"].day_of_week == 4

    @pytest.mark.asyncio
    async def test_save_upserts_by_key(
        self, store: DatabasePatternStore, test_session_local
    ) -> None:
        await store.save([make_pattern(success_rate=0.5, total_attempts=4)])
        await store.save([make_pattern(success_rate=0.6, total_attempts=5)])

        async with test_session_local() as db:
            count = await db.scalar(select(func.count()).select_from(PatternRecord))
        [loaded] = await store.load()

        assert count == 1
        assert loaded.success_rate == pytest.approx(0.6)
        assert loaded.total_attempts == 5

    @pytest.mark.asyncio
    async def test_old_patterns_are_purged(
        self, store: DatabasePatternStore, test_session_local
    ) -> None:
        await store.save([make_pattern("court-1"), make_pattern("court-2", age_days=200)])

        async with test_session_local() as db:
            result = await db.execute(select(PatternRecord.court_id))
            court_ids = [row[0] for row in result.all()]

        assert court_ids == ["court-1"]
        assert [p.court_id for p in await store.load()] == ["court-1"]


class TestInMemoryPatternStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_initial_patterns(self) -> None:
        store = InMemoryPatternStore([make_pattern()])

        assert len(await store.load()) == 1

    @pytest.mark.asyncio
    async def test_save_replaces_snapshot(self) -> None:
        store = InMemoryPatternStore([make_pattern("court-1")])

        await store.save([make_pattern("court-2")])

        assert [p.court_id for p in await store.load()] == ["court-2"]

    @pytest.mark.asyncio
    async def test_load_returns_copies(self) -> None:
        store = InMemoryPatternStore([make_pattern(success_rate=0.5)])

        [loaded] = await store.load()
        loaded.success_rate = 0.0

        [again] = await store.load()
        assert again.success_rate == 0.5
