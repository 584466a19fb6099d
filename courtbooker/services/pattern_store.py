"""
Persistence for learned booking patterns.

Stores are invoked at orchestrator startup (load) and shutdown (save), never
on every single pattern update.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import timedelta

from sqlalchemy import delete, select

from courtbooker.models import database
from courtbooker.models.database import PatternRecord
from courtbooker.models.schemas import BookingPattern, utcnow

logger = logging.getLogger(__name__)


class PatternStore(ABC):
    @abstractmethod
    async def load(self) -> list[BookingPattern]:
        pass

    @abstractmethod
    async def save(self, patterns: Iterable[BookingPattern]) -> None:
        pass


class InMemoryPatternStore(PatternStore):
    """Keeps the last saved snapshot in memory. Useful for tests and dry runs."""

    def __init__(self, patterns: Iterable[BookingPattern] = ()) -> None:
        self._patterns = [p.model_copy() for p in patterns]

    async def load(self) -> list[BookingPattern]:
        return [p.model_copy() for p in self._patterns]

    async def save(self, patterns: Iterable[BookingPattern]) -> None:
        self._patterns = [p.model_copy() for p in patterns]


class DatabasePatternStore(PatternStore):
    """
    Stores patterns in the booking_patterns table.

    save() upserts by (court_id, time_slot, day_of_week). Patterns not updated
    within ``max_age_days`` are purged on save and skipped on load.
    """

    def __init__(self, max_age_days: int = 90) -> None:
        self.max_age_days = max_age_days

    def _record_to_pattern(self, record: PatternRecord) -> BookingPattern:
        """Convert a PatternRecord SQLAlchemy model to a BookingPattern Pydantic model."""
        return BookingPattern(
            court_id=record.court_id,  # type: ignore[arg-type]
            time_slot=record.time_slot,  # type: ignore[arg-type]
            day_of_week=record.day_of_week,  # type: ignore[arg-type]
            success_rate=record.success_rate,  # type: ignore[arg-type]
            total_attempts=record.total_attempts,  # type: ignore[arg-type]
            last_updated=record.last_updated,  # type: ignore[arg-type]
        )

    async def load(self) -> list[BookingPattern]:
        cutoff = utcnow() - timedelta(days=self.max_age_days)
        async with database.AsyncSessionLocal() as db:
            result = await db.execute(
                select(PatternRecord).where(PatternRecord.last_updated >= cutoff)
            )
            patterns = [self._record_to_pattern(r) for r in result.scalars().all()]
        logger.info(f"Loaded {len(patterns)} booking patterns from database")
        return patterns

    async def save(self, patterns: Iterable[BookingPattern]) -> None:
        patterns = list(patterns)
        cutoff = utcnow() - timedelta(days=self.max_age_days)
        async with database.AsyncSessionLocal() as db:
            result = await db.execute(select(PatternRecord))
            existing = {
                (r.court_id, r.time_slot, r.day_of_week): r for r in result.scalars().all()
            }

            for pattern in patterns:
                record = existing.get((pattern.court_id, pattern.time_slot, pattern.day_of_week))
                if record is None:
                    db.add(
                        PatternRecord(
                            court_id=pattern.court_id,
                            time_slot=pattern.time_slot,
                            day_of_week=pattern.day_of_week,
                            success_rate=pattern.success_rate,
                            total_attempts=pattern.total_attempts,
                            last_updated=pattern.last_updated,
                        )
                    )
                else:
                    record.success_rate = pattern.success_rate  # type: ignore[assignment]
                    record.total_attempts = pattern.total_attempts  # type: ignore[assignment]
                    record.last_updated = pattern.last_updated  # type: ignore[assignment]

            purged = await db.execute(
                delete(PatternRecord).where(PatternRecord.last_updated < cutoff)
            )
            await db.commit()

        logger.info(
            f"Saved {len(patterns)} booking patterns, purged {purged.rowcount} older than "
            f"{self.max_age_days} days"
        )
