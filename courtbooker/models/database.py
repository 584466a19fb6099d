"""
SQLAlchemy database models for persistent storage.

Learned booking patterns are loaded into the CourtScorer at startup and
written back at shutdown, so the scorer keeps its history across restarts.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from courtbooker.config import settings
from courtbooker.models.schemas import utcnow


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PatternRecord(Base):
    """
    Database model for one learned booking pattern.

    Columns:
        id: Auto-incrementing primary key.
        court_id: Court the statistic belongs to.
        time_slot: Session start time (HH:MM).
        day_of_week: 0=Sunday ... 6=Saturday.
        success_rate: Running mean of booking outcomes in [0, 1].
        total_attempts: Number of outcomes folded into success_rate.
        last_updated: When the pattern last changed; drives retention.
    """

    __tablename__ = "booking_patterns"
    __table_args__ = (
        UniqueConstraint("court_id", "time_slot", "day_of_week", name="uq_pattern_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    court_id = Column(String(50), nullable=False, index=True)
    time_slot = Column(String(5), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    success_rate = Column(Float, nullable=False, default=0.0)
    total_attempts = Column(Integer, nullable=False, default=0)
    last_updated = Column(DateTime, default=utcnow, onupdate=utcnow)


engine = create_async_engine(
    settings.database_url.replace("sqlite://", "sqlite+aiosqlite://")
    if settings.database_url.startswith("sqlite://")
    else settings.database_url,
    echo=False,
)

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
