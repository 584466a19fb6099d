import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from courtbooker.api import bookings, health, patterns
from courtbooker.config import settings
from courtbooker.models.database import init_db
from courtbooker.providers.mock_provider import MockCalendarProvider
from courtbooker.services.booking_service import booking_service
from courtbooker.services.pattern_store import DatabasePatternStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()

    logger.warning(
        "No real calendar integration is configured - using MockCalendarProvider. "
        "Bookings are made against an in-memory calendar."
    )
    provider = MockCalendarProvider(
        slot_interval=settings.slot_interval_minutes,
        business_start=settings.business_hours_start,
        business_end=settings.business_hours_end,
    )
    booking_service.set_calendar_provider(provider, executor=provider)

    if settings.pattern_learning_enabled:
        booking_service.set_pattern_store(DatabasePatternStore(settings.pattern_max_age_days))
        loaded = await booking_service.load_patterns()
        logger.info(f"Pattern learning enabled, {loaded} patterns loaded")

    yield

    saved = await booking_service.save_patterns()
    if saved:
        logger.info(f"Saved {saved} booking patterns on shutdown")
    booking_service.cache.log_cache_status()


app = FastAPI(
    title="CourtBooker",
    description="Court slot-pair booking assistant with isolation avoidance and pattern learning",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(bookings.router)
app.include_router(patterns.router)
