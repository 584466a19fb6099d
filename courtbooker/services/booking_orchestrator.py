"""
Top-level booking state machine.

One run validates the configuration, then makes up to ``max_retries``
attempts. Each attempt walks the prioritized candidate start times, discovers
slot pairs, ranks courts, avoids isolating pairs where possible, and finally
simulates (dry run) or executes the booking. Failed attempts back off
exponentially (2s, 4s, 8s, ...) before the next one.

execute_booking() never raises: every outcome, including an invalid
configuration, is reported as a BookingResult.
"""

import asyncio
import logging
import time as time_module
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from courtbooker.exceptions import BookingExecutionError, CalendarTransportError
from courtbooker.models.schemas import (
    BookingConfig,
    BookingEvent,
    BookingResult,
    ErrorCategory,
    EventType,
    OrchestratorState,
    ScoringWeights,
    SlotPair,
    TimeSlot,
    utcnow,
)
from courtbooker.providers.base import BookingExecutor, CalendarDataSource
from courtbooker.services import time_calculus
from courtbooker.services.alternative_generator import AlternativeGenerator
from courtbooker.services.config_validator import ConfigValidator
from courtbooker.services.court_scorer import CourtScorer
from courtbooker.services.isolation_checker import IsolationChecker
from courtbooker.services.pattern_store import PatternStore
from courtbooker.services.slot_cache import SlotCache
from courtbooker.services.slot_searcher import SlotSearcher
from courtbooker.services.telemetry import NullTelemetry, TelemetrySink

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 2


@dataclass
class AttemptOutcome:
    success: bool
    pair: SlotPair | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    degraded_selection: bool = False
    start_time: str | None = None
    target_date: str | None = None


class BookingOrchestrator:
    """
    Drives one booking configuration through validation, attempts and retries.

    The scorer, cache and generator may be shared between orchestrators (the
    HTTP app shares one of each per process). A scorer created here uses the
    config's scoring weights. A shared scorer keeps its own weights unless the
    config sets non-default ones, which then apply to this run only.

    Usage:
        orchestrator = BookingOrchestrator(config, calendar=provider, executor=provider)
        await orchestrator.start()
        result = await orchestrator.execute_booking()
        await orchestrator.shutdown()
    """

    def __init__(
        self,
        config: BookingConfig,
        calendar: CalendarDataSource,
        executor: BookingExecutor | None = None,
        scorer: CourtScorer | None = None,
        cache: SlotCache | None = None,
        generator: AlternativeGenerator | None = None,
        pattern_store: PatternStore | None = None,
        telemetry: TelemetrySink | None = None,
        business_start: str = "06:00",
        business_end: str = "23:00",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.calendar = calendar
        self.executor = executor
        self.scorer = scorer or CourtScorer(config.scoring_weights)
        self._run_weights = (
            config.scoring_weights
            if scorer is not None and config.scoring_weights != ScoringWeights()
            else None
        )
        self.cache = cache or SlotCache()
        self.generator = generator or AlternativeGenerator(
            session_duration=config.duration,
            business_start=business_start,
            business_end=business_end,
        )
        self.pattern_store = pattern_store
        self.telemetry = telemetry or NullTelemetry()
        self.validator = ConfigValidator(business_start, business_end)
        self.business_start = business_start
        self.business_end = business_end
        self._sleep = sleep
        self._clock = clock

        self._state = OrchestratorState.IDLE
        self._cancelled = False
        self._runs = 0
        self._successful_runs = 0
        self._total_attempts = 0
        self._last_result: BookingResult | None = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def cancel(self) -> None:
        """
        Abort the retry loop before its next attempt. An attempt in flight completes.

        A cancel issued before execute_booking() stops that run before its first
        attempt. The flag clears when a run finishes.
        """
        self._cancelled = True
        logger.info("Booking run cancellation requested")

    async def start(self) -> None:
        """Load learned patterns into the scorer."""
        if self.pattern_store is None or not self.config.enable_pattern_learning:
            return
        patterns = await self.pattern_store.load()
        self.scorer.load_patterns(patterns)

    async def shutdown(self) -> None:
        """Persist learned patterns."""
        if self.pattern_store is None or not self.config.enable_pattern_learning:
            return
        await self.pattern_store.save(self.scorer.export_patterns())

    async def execute_booking(self) -> BookingResult:
        run_started = utcnow()
        self._runs += 1

        self._state = OrchestratorState.VALIDATING_CONFIG
        errors = self._validate()
        if errors:
            self._state = OrchestratorState.CONFIG_INVALID
            return self._finish(
                BookingResult(
                    success=False,
                    error=f"Invalid configuration: {'; '.join(errors)}",
                    error_category=ErrorCategory.CONFIGURATION,
                    retry_attempts=0,
                    timestamp=run_started,
                )
            )

        max_retries = self.config.max_retries
        logger.info(
            f"Starting booking run: target {self.config.target_start_time}, "
            f"{self.config.days_ahead} days ahead, max_retries={max_retries}, "
            f"dry_run={self.config.dry_run}"
        )
        self._emit(BookingEvent(event_type=EventType.RUN_STARTED))

        last_outcome: AttemptOutcome | None = None
        for attempt in range(1, max_retries + 1):
            if self._cancelled:
                self._state = OrchestratorState.CANCELLED
                logger.info(f"Booking run cancelled after {attempt - 1} attempts")
                return self._finish(
                    BookingResult(
                        success=False,
                        error="Booking run cancelled",
                        error_category=ErrorCategory.CANCELLED,
                        retry_attempts=attempt - 1,
                        timestamp=run_started,
                    )
                )

            self._state = OrchestratorState.ATTEMPTING
            self._total_attempts += 1
            logger.info(f"Booking attempt {attempt}/{max_retries}")
            self._emit(BookingEvent(event_type=EventType.ATTEMPT_STARTED, attempt=attempt))

            started = time_module.perf_counter()
            try:
                outcome = await self._attempt()
            except Exception as e:
                logger.error(f"Booking attempt {attempt}/{max_retries} raised: {e}", exc_info=True)
                outcome = AttemptOutcome(
                    success=False,
                    error=str(e) or type(e).__name__,
                    error_category=self._categorize(e),
                )
            duration_ms = (time_module.perf_counter() - started) * 1000

            self._emit(
                BookingEvent(
                    event_type=(
                        EventType.ATTEMPT_SUCCEEDED if outcome.success else EventType.ATTEMPT_FAILED
                    ),
                    attempt=attempt,
                    success=outcome.success,
                    court_id=outcome.pair.court_id if outcome.pair else None,
                    date=outcome.target_date,
                    start_time=outcome.start_time,
                    error=outcome.error,
                    error_category=outcome.error_category,
                    duration_ms=duration_ms,
                )
            )

            if outcome.success:
                self._state = OrchestratorState.SUCCEEDED
                self._successful_runs += 1
                logger.info(
                    f"Booking succeeded on attempt {attempt}: court {outcome.pair.court_id} "
                    f"{outcome.target_date} {outcome.start_time}"
                )
                return self._finish(
                    BookingResult(
                        success=True,
                        booked_pair=outcome.pair,
                        retry_attempts=attempt,
                        degraded_selection=outcome.degraded_selection,
                        timestamp=run_started,
                    )
                )

            last_outcome = outcome
            logger.error(
                f"Booking attempt {attempt}/{max_retries} failed "
                f"({outcome.error_category.value if outcome.error_category else 'unknown'}): "
                f"{outcome.error}"
            )

            if attempt < max_retries:
                self._state = OrchestratorState.RETRY_WAIT
                delay = float(BACKOFF_BASE_SECONDS**attempt)
                logger.info(f"Retrying in {delay:.0f}s")
                await self._sleep(delay)

        self._state = OrchestratorState.EXHAUSTED
        last_error = last_outcome.error if last_outcome else "unknown error"
        return self._finish(
            BookingResult(
                success=False,
                error=f"All {max_retries} booking attempts failed. Last error: {last_error}",
                error_category=ErrorCategory.RETRIES_EXHAUSTED,
                retry_attempts=max_retries,
                timestamp=run_started,
            )
        )

    def get_booking_stats(self) -> dict[str, object]:
        return {
            "state": self._state.value,
            "total_runs": self._runs,
            "successful_runs": self._successful_runs,
            "total_attempts": self._total_attempts,
            "last_result": self._last_result.model_dump(mode="json") if self._last_result else None,
            "cache": self.cache.get_metrics().model_dump(),
            "patterns": self.scorer.get_statistics(),
        }

    def _validate(self) -> list[str]:
        errors = list(self.validator.validate(self.config).errors)
        if not self.config.dry_run and self.executor is None:
            errors.append("dry_run is disabled but no booking executor is configured")
        return errors

    async def _attempt(self) -> AttemptOutcome:
        config = self.config
        now = self._clock() if self._clock else None
        target_date = time_calculus.calculate_booking_date(config.days_ahead, config.timezone, now)
        day = time_calculus.day_of_week(target_date)

        candidates = self._candidate_times()
        searcher = SlotSearcher(self.calendar, config.slot_interval, config.neighbor_padding)
        isolation_checker = IsolationChecker(
            config.slot_interval, self.business_start, self.business_end
        )

        transport_error: str | None = None
        for candidate in candidates:
            times = time_calculus.generate_time_slots(
                candidate.start_time, config.duration, config.slot_interval
            )
            search = await searcher.search(target_date, times)
            if search.error:
                transport_error = search.error

            pairs = [p for p in search.available_pairs if p.slot1.start_time == times[0]]
            if not pairs:
                logger.debug(f"No pairs at {candidate.start_time} on {target_date}")
                continue

            court_ids = list(dict.fromkeys(slot.court_id for slot in search.slots))
            scores = self.scorer.score_courts(
                court_ids,
                search.available_courts,
                config.preferred_courts,
                candidate.start_time,
                day,
                weights=self._run_weights,
            )
            rank = {score.court_id: index for index, score in enumerate(scores)}
            ordered = sorted(pairs, key=lambda p: rank.get(p.court_id, len(rank)))

            pair = isolation_checker.find_best_non_isolating_pair(ordered, search.slots)
            degraded = False
            if pair is None:
                pair = ordered[0]
                degraded = True
                logger.warning(
                    f"Every pair at {candidate.start_time} isolates a slot; falling back to "
                    f"court {pair.court_id} ({ErrorCategory.ISOLATION_EXHAUSTED.value})"
                )

            try:
                if config.dry_run:
                    await self._simulate(pair)
                else:
                    await self._execute(pair)
            except Exception:
                self._learn(pair.court_id, candidate.start_time, day, False)
                if not config.dry_run and self.executor is not None:
                    await self._reset_executor()
                raise

            self._learn(pair.court_id, candidate.start_time, day, True)
            return AttemptOutcome(
                success=True,
                pair=pair,
                degraded_selection=degraded,
                start_time=candidate.start_time,
                target_date=target_date,
            )

        for court_id in config.preferred_courts:
            self._learn(court_id, config.target_start_time, day, False)

        if transport_error:
            return AttemptOutcome(
                success=False,
                error=f"Calendar unavailable: {transport_error}",
                error_category=ErrorCategory.TRANSPORT,
                target_date=target_date,
            )
        return AttemptOutcome(
            success=False,
            error=(
                f"No available slot pairs on {target_date} "
                f"across {len(candidates)} candidate times"
            ),
            error_category=ErrorCategory.DISCOVERY_EMPTY,
            target_date=target_date,
        )

    def _candidate_times(self) -> list[TimeSlot]:
        config = self.config
        return self.cache.generate_with_cache(
            config.target_start_time,
            config.time_preferences,
            config.fallback_time_range,
            config.slot_interval,
            lambda: self.generator.generate_prioritized_time_slots(
                config.target_start_time,
                config.time_preferences,
                config.fallback_time_range,
                config.slot_interval,
            ),
        )

    async def _simulate(self, pair: SlotPair) -> None:
        logger.info(
            f"DRY RUN: would book court {pair.court_id} on {pair.slot1.date} "
            f"{pair.slot1.start_time}+{pair.slot2.start_time}"
        )
        if self.config.simulate_delay_seconds > 0:
            await self._sleep(self.config.simulate_delay_seconds)

    async def _execute(self, pair: SlotPair) -> None:
        if self.executor is None:
            raise BookingExecutionError("No booking executor configured")
        await self.executor.select_slot(pair.slot1)
        await self.executor.select_slot(pair.slot2)
        await self.executor.proceed_to_checkout()
        await self.executor.complete_booking()

    async def _reset_executor(self) -> None:
        try:
            await self.executor.reset_selection()
        except Exception as e:
            logger.warning(f"Failed to reset booking executor selection: {e}")

    def _learn(self, court_id: str, time_slot: str, day: int, success: bool) -> None:
        if self.config.enable_pattern_learning:
            self.scorer.update_pattern(court_id, time_slot, day, success)

    def _emit(self, event: BookingEvent) -> None:
        try:
            self.telemetry.record(event)
        except Exception as e:
            logger.warning(f"Telemetry sink failed on {event.event_type.value}: {e}")

    def _finish(self, result: BookingResult) -> BookingResult:
        self._last_result = result
        self._cancelled = False
        self._emit(
            BookingEvent(
                event_type=EventType.RUN_COMPLETED,
                attempt=result.retry_attempts,
                success=result.success,
                court_id=result.booked_pair.court_id if result.booked_pair else None,
                error=result.error,
                error_category=result.error_category,
            )
        )
        return result

    @staticmethod
    def _categorize(error: Exception) -> ErrorCategory:
        if isinstance(error, CalendarTransportError):
            return ErrorCategory.TRANSPORT
        return ErrorCategory.EXECUTION
