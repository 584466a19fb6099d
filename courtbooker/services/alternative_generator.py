"""
Alternative time-slot generation around a preferred start time.

Candidates come from three sources: the preferred time itself, the caller's
explicit time preferences, and a registry of named fallback strategies. The
merged list is ranked by priority (then closeness to the preferred time) and
deduplicated by start time.
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping

from courtbooker.models.schemas import TimePreference, TimeSlot
from courtbooker.services import time_calculus

logger = logging.getLogger(__name__)

PRIMARY_PRIORITY = 10
MAX_FALLBACK_DISTANCE = 120
PEAK_TIMES = ("12:00", "13:00", "18:00", "19:00", "20:00")
PEAK_MARGIN_MINUTES = 30
OFF_PEAK_TIMES = (
    "09:00", "09:30", "10:00", "10:30", "11:00",
    "14:30", "15:00", "15:30", "16:00", "16:30",
    "21:00", "21:30", "22:00",
)


class FallbackStrategy(ABC):
    """A named algorithm producing alternative start times around a preferred time."""

    name: str

    def __init__(self, business_start: str = "06:00", business_end: str = "23:00") -> None:
        self.business_start = business_start
        self.business_end = business_end

    @abstractmethod
    def execute(self, original_time: str, fallback_range: int) -> list[str]:
        pass

    def _in_day(self, original_time: str, offset: int) -> str | None:
        """Shift the time by offset minutes; None if it leaves the day or business hours."""
        candidate = time_calculus.to_minutes(original_time) + offset
        if not 0 <= candidate < time_calculus.MINUTES_PER_DAY:
            return None
        value = time_calculus.format_minutes(candidate)
        if not time_calculus.is_within_business_hours(
            value, self.business_start, self.business_end
        ):
            return None
        return value


class GradualStrategy(FallbackStrategy):
    name = "gradual"
    increments = (15, 30, 45, 60, 90, 120)

    def execute(self, original_time: str, fallback_range: int) -> list[str]:
        alternatives = []
        for increment in self.increments:
            if increment > fallback_range:
                continue
            for offset in (-increment, increment):
                value = self._in_day(original_time, offset)
                if value:
                    alternatives.append(value)
        return alternatives


class SymmetricStrategy(FallbackStrategy):
    name = "symmetric"
    step = 30

    def execute(self, original_time: str, fallback_range: int) -> list[str]:
        alternatives = []
        for offset in range(self.step, fallback_range + 1, self.step):
            for signed in (-offset, offset):
                value = self._in_day(original_time, signed)
                if value:
                    alternatives.append(value)
        return alternatives


class PeakAvoidanceStrategy(FallbackStrategy):
    name = "peak-avoidance"

    def execute(self, original_time: str, fallback_range: int) -> list[str]:
        candidates = time_calculus.generate_alternative_time_slots(
            original_time,
            fallback_range // 2,
            30,
            self.business_start,
            self.business_end,
        )
        return [
            value
            for value in candidates
            if not any(
                time_calculus.get_time_difference_in_minutes(value, peak) <= PEAK_MARGIN_MINUTES
                for peak in PEAK_TIMES
            )
        ]


class OffPeakStrategy(FallbackStrategy):
    name = "off-peak"

    def execute(self, original_time: str, fallback_range: int) -> list[str]:
        return [
            value
            for value in OFF_PEAK_TIMES
            if time_calculus.get_time_difference_in_minutes(original_time, value) <= fallback_range
            and time_calculus.is_within_business_hours(
                value, self.business_start, self.business_end
            )
        ]


class AlternativeGenerator:
    """
    Produces ranked candidate time slots around a preferred time.

    Usage:
        generator = AlternativeGenerator(session_duration=60)
        slots = generator.generate_prioritized_time_slots("14:00", fallback_range=90)
    """

    def __init__(
        self,
        session_duration: int = 60,
        business_start: str = "06:00",
        business_end: str = "23:00",
        default_strategies: Iterable[str] | None = None,
    ) -> None:
        """
        Initialize the generator with the built-in strategies.

        Args:
            session_duration: Minutes used to compute each candidate's end time.
            business_start: Earliest acceptable start time.
            business_end: Exclusive latest start time.
            default_strategies: Strategy names run by generate_prioritized_time_slots.
                If None, every registered strategy runs.
        """
        self.session_duration = session_duration
        self.business_start = business_start
        self.business_end = business_end
        self.default_strategies = list(default_strategies) if default_strategies else None
        self._strategies: dict[str, FallbackStrategy] = {}
        for strategy_class in (
            GradualStrategy,
            SymmetricStrategy,
            PeakAvoidanceStrategy,
            OffPeakStrategy,
        ):
            self.register_strategy(strategy_class(business_start, business_end))
        logger.info(
            f"AlternativeGenerator initialized with strategies: {self.available_strategies()}"
        )

    def register_strategy(self, strategy: FallbackStrategy) -> None:
        """Register (or replace) a fallback strategy under its name."""
        self._strategies[strategy.name] = strategy
        logger.debug(f"Registered fallback strategy '{strategy.name}'")

    def available_strategies(self) -> list[str]:
        return list(self._strategies)

    def generate_prioritized_time_slots(
        self,
        preferred_time: str,
        preferences: Iterable[TimePreference] = (),
        fallback_range: int = 120,
        slot_interval: int = 30,
        strategy_names: Iterable[str] | None = None,
    ) -> list[TimeSlot]:
        """
        Generate a deduplicated, priority-sorted list of candidate slots.

        The preferred time is seeded at priority 10, explicit preferences keep
        their own priority, and fallback strategy output is ranked by distance.
        ``slot_interval`` is part of the cache key but does not change the
        strategies' own grids.

        Returns:
            TimeSlots sorted by priority (desc) then distance (asc), unique by start time.
        """
        preferred_minutes = time_calculus.to_minutes(preferred_time)
        slots = [self._create_time_slot(preferred_time, preferred_minutes, PRIMARY_PRIORITY)]

        for preference in preferences:
            if preference.start_time != preferred_time:
                slots.append(
                    self._create_time_slot(
                        preference.start_time, preferred_minutes, preference.priority
                    )
                )

        names = strategy_names or self.default_strategies or self.available_strategies()
        slots.extend(self.generate_with_strategies(preferred_time, names, fallback_range))

        ranked = sorted(slots, key=lambda s: (-s.priority, s.distance_from_preferred))
        unique = self._remove_duplicates(ranked)

        logger.debug(
            f"Generated {len(unique)} unique slots ({len(slots)} total) around {preferred_time} "
            f"within {fallback_range} min; top: "
            f"{[(s.start_time, s.priority) for s in unique[:5]]}"
        )
        return unique

    def generate_with_strategies(
        self,
        original_time: str,
        strategy_names: Iterable[str],
        fallback_range: int = 120,
    ) -> list[TimeSlot]:
        """Run the named strategies; unknown names are logged and skipped."""
        original_minutes = time_calculus.to_minutes(original_time)
        alternatives: list[str] = []
        for name in strategy_names:
            strategy = self._strategies.get(name)
            if strategy is None:
                logger.warning(
                    f"Unknown fallback strategy '{name}', available: {self.available_strategies()}"
                )
                continue
            alternatives.extend(strategy.execute(original_time, fallback_range))

        slots = [
            self._create_time_slot(
                value, original_minutes, self._fallback_priority(value, original_minutes)
            )
            for value in alternatives
        ]
        return self._remove_duplicates(slots)

    def generate_optimal_booking_window(
        self,
        base_time: str,
        window_minutes: int = 60,
        success_patterns: Mapping[str, float] | None = None,
    ) -> list[TimeSlot]:
        """Rank a 15-minute grid around base_time by historical success rate."""
        success_patterns = success_patterns or {}
        base_minutes = time_calculus.to_minutes(base_time)
        candidates = time_calculus.generate_alternative_time_slots(
            base_time, window_minutes // 2, 15, self.business_start, self.business_end
        )
        slots = [
            self._create_time_slot(
                value,
                base_minutes,
                self._success_rate_to_priority(success_patterns.get(value, 0.5)),
            )
            for value in candidates
        ]
        return sorted(slots, key=lambda s: -s.priority)

    def generate_business_hours_slots(
        self, preferred_time: str, range_minutes: int = 180
    ) -> list[TimeSlot]:
        """Half-hour candidates whose whole session fits inside business hours."""
        preferred_minutes = time_calculus.to_minutes(preferred_time)
        end_limit = time_calculus.to_minutes(self.business_end)
        slots = []
        for value in time_calculus.generate_alternative_time_slots(
            preferred_time, range_minutes, 30, self.business_start, self.business_end
        ):
            if time_calculus.to_minutes(value) + self.session_duration > end_limit:
                continue
            slots.append(
                self._create_time_slot(
                    value, preferred_minutes, self._fallback_priority(value, preferred_minutes)
                )
            )
        return self._remove_duplicates(slots)

    def _create_time_slot(self, start_time: str, preferred_minutes: int, priority: int) -> TimeSlot:
        start = time_calculus.to_minutes(start_time)
        return TimeSlot(
            start_time=time_calculus.format_minutes(start),
            end_time=time_calculus.format_minutes(start + self.session_duration),
            priority=priority,
            distance_from_preferred=abs(start - preferred_minutes),
        )

    @staticmethod
    def _fallback_priority(value: str, preferred_minutes: int) -> int:
        # 0 minutes away -> 8, 120+ minutes away -> 1
        distance = abs(time_calculus.to_minutes(value) - preferred_minutes)
        return max(1, 8 - math.floor(distance / MAX_FALLBACK_DISTANCE * 7))

    @staticmethod
    def _success_rate_to_priority(success_rate: float) -> int:
        return max(1, min(10, round(success_rate * 9) + 1))

    @staticmethod
    def _remove_duplicates(slots: list[TimeSlot]) -> list[TimeSlot]:
        seen: set[str] = set()
        unique = []
        for slot in slots:
            if slot.start_time in seen:
                continue
            seen.add(slot.start_time)
            unique.append(slot)
        return unique
