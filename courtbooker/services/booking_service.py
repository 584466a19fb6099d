"""
Booking service for running orchestrations inside the web process.

This module owns the process-wide decision components (court scorer, slot
cache, alternative generator and analytics) so that every booking run shares
learned patterns and cached alternatives.
"""

import logging

from courtbooker.config import settings
from courtbooker.models.schemas import BookingConfig, BookingResult, ErrorCategory, TimeSlot
from courtbooker.providers.base import BookingExecutor, CalendarDataSource
from courtbooker.services.alternative_generator import AlternativeGenerator
from courtbooker.services.booking_orchestrator import BookingOrchestrator
from courtbooker.services.court_scorer import CourtScorer
from courtbooker.services.pattern_store import PatternStore
from courtbooker.services.slot_cache import SlotCache
from courtbooker.services.telemetry import BookingAnalytics, CompositeTelemetry, LoggingTelemetry

logger = logging.getLogger(__name__)


class BookingService:
    """
    Runs booking orchestrations against the configured calendar provider.

    Attributes:
        scorer: Shared CourtScorer; its patterns persist via the pattern store.
        cache: Shared SlotCache for generated alternatives.
        generator: Shared AlternativeGenerator.
        analytics: Aggregated outcomes of every attempt made by this process.
    """

    def __init__(self) -> None:
        self.scorer = CourtScorer()
        self.cache = SlotCache(
            enabled=settings.cache_enabled,
            max_size=settings.cache_max_size,
            ttl_seconds=settings.cache_ttl_seconds,
            debug_mode=settings.cache_debug,
        )
        self.generator = AlternativeGenerator(
            session_duration=settings.duration_minutes,
            business_start=settings.business_hours_start,
            business_end=settings.business_hours_end,
        )
        self.analytics = BookingAnalytics()
        self._calendar: CalendarDataSource | None = None
        self._executor: BookingExecutor | None = None
        self._pattern_store: PatternStore | None = None

    def set_calendar_provider(
        self, calendar: CalendarDataSource, executor: BookingExecutor | None = None
    ) -> None:
        """Set the calendar and (optionally) the executor used for real bookings."""
        self._calendar = calendar
        self._executor = executor

    def set_pattern_store(self, store: PatternStore) -> None:
        self._pattern_store = store

    async def load_patterns(self) -> int:
        if self._pattern_store is None:
            return 0
        patterns = await self._pattern_store.load()
        self.scorer.load_patterns(patterns)
        return len(patterns)

    async def save_patterns(self) -> int:
        if self._pattern_store is None:
            return 0
        patterns = self.scorer.export_patterns()
        await self._pattern_store.save(patterns)
        return len(patterns)

    def build_config(self, **overrides: object) -> BookingConfig:
        return settings.booking_config(**overrides)

    async def run_booking(self, config: BookingConfig) -> BookingResult:
        """
        Execute one orchestration run with the shared components.

        Returns a failed result (never raises) when no calendar provider is set.
        """
        if self._calendar is None:
            logger.error("Booking run requested but no calendar provider is configured")
            return BookingResult(
                success=False,
                error="Calendar provider not configured",
                error_category=ErrorCategory.CONFIGURATION,
            )

        orchestrator = BookingOrchestrator(
            config,
            calendar=self._calendar,
            executor=self._executor,
            scorer=self.scorer,
            cache=self.cache,
            generator=self.generator,
            telemetry=CompositeTelemetry(LoggingTelemetry(), self.analytics),
            business_start=settings.business_hours_start,
            business_end=settings.business_hours_end,
        )
        return await orchestrator.execute_booking()

    def get_alternatives(
        self,
        preferred_time: str,
        fallback_range: int | None = None,
        slot_interval: int | None = None,
    ) -> list[TimeSlot]:
        """Prioritized alternative start times, served from the shared cache."""
        fallback_range = settings.fallback_time_range if fallback_range is None else fallback_range
        slot_interval = slot_interval or settings.slot_interval_minutes
        return self.cache.generate_with_cache(
            preferred_time,
            [],
            fallback_range,
            slot_interval,
            lambda: self.generator.generate_prioritized_time_slots(
                preferred_time, fallback_range=fallback_range, slot_interval=slot_interval
            ),
        )


booking_service = BookingService()
