"""
Court scoring and booking-pattern learning.

Each candidate court is scored on four components normalized to [0, 1]
(availability, historical success, user preference, court position) and the
weighted sum decides the ranking. Historical success comes from an in-memory
pattern map keyed by (court, time slot, day of week) that is updated online
after every booking attempt.
"""

import logging
import re
import threading
from collections.abc import Iterable, Sequence

from courtbooker.models.schemas import (
    BookingPattern,
    CourtScore,
    ScoreComponents,
    ScoringWeights,
    utcnow,
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5
MIN_ATTEMPTS_FOR_CONFIDENCE = 3
NON_PREFERRED_SCORE = 0.3
PREFERENCE_SPREAD = 0.4
MIN_COURT_NUMBER = 1
MAX_COURT_NUMBER = 8
POSITION_SPREAD = 0.7
MIN_POSITION_SCORE = 0.3

COURT_NUMBER_PATTERN = re.compile(r"\d+")

PatternKey = tuple[str, str, int]


class CourtScorer:
    """
    Ranks courts for a target time/day and learns from booking outcomes.

    The pattern map is guarded by a lock so that concurrent runs sharing one
    scorer cannot lose running-average updates.

    Attributes:
        weights: Current component weights; update with update_weights().
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights.model_copy() if weights else ScoringWeights()
        self._patterns: dict[PatternKey, BookingPattern] = {}
        self._lock = threading.RLock()
        logger.info(f"CourtScorer initialized with weights: {self.weights.model_dump()}")

    def score_courts(
        self,
        court_ids: Iterable[str],
        available_courts: Iterable[str],
        preferred_courts: Sequence[str] = (),
        time_slot: str = "",
        day_of_week: int = 0,
        weights: ScoringWeights | None = None,
    ) -> list[CourtScore]:
        """
        Score courts and return them sorted by score, highest first.

        Args:
            court_ids: Courts to score.
            available_courts: Courts currently known to have availability.
            preferred_courts: User's preferred courts, most preferred first.
            time_slot: Target start time (HH:MM), used for the historical lookup.
            day_of_week: 0=Sunday ... 6=Saturday.
            weights: Weights for this call only; defaults to the scorer's own.
        """
        available = set(available_courts)
        scores = [
            self.score_court(
                court_id, available, preferred_courts, time_slot, day_of_week, weights
            )
            for court_id in court_ids
        ]
        scores.sort(key=lambda s: s.score, reverse=True)
        logger.debug(
            f"Scored {len(scores)} courts for {time_slot} (day {day_of_week}): "
            f"{[(s.court_id, round(s.score, 3)) for s in scores]}"
        )
        return scores

    def score_court(
        self,
        court_id: str,
        available_courts: Iterable[str],
        preferred_courts: Sequence[str],
        time_slot: str,
        day_of_week: int,
        weights: ScoringWeights | None = None,
    ) -> CourtScore:
        components = ScoreComponents(
            availability=self.availability_score(court_id, available_courts),
            historical=self.historical_score(court_id, time_slot, day_of_week),
            preference=self.preference_score(court_id, preferred_courts),
            position=self.position_score(court_id),
        )
        weights = weights or self.weights
        score = (
            components.availability * weights.availability
            + components.historical * weights.historical
            + components.preference * weights.preference
            + components.position * weights.position
        )
        return CourtScore(
            court_id=court_id,
            score=score,
            components=components,
            reason=self._build_reason(court_id, components),
        )

    @staticmethod
    def availability_score(court_id: str, available_courts: Iterable[str]) -> float:
        return 1.0 if court_id in set(available_courts) else 0.0

    def historical_score(self, court_id: str, time_slot: str, day_of_week: int) -> float:
        pattern = self.get_pattern(court_id, time_slot, day_of_week)
        if pattern is None or pattern.total_attempts < MIN_ATTEMPTS_FOR_CONFIDENCE:
            return NEUTRAL_SCORE
        return pattern.success_rate

    @staticmethod
    def preference_score(court_id: str, preferred_courts: Sequence[str]) -> float:
        if not preferred_courts:
            return NEUTRAL_SCORE
        if court_id not in preferred_courts:
            return NON_PREFERRED_SCORE
        index = list(preferred_courts).index(court_id)
        # First preference gets 1.0, decreasing toward 0.6
        return 1.0 - (index / len(preferred_courts)) * PREFERENCE_SPREAD

    @staticmethod
    def position_score(court_id: str) -> float:
        match = COURT_NUMBER_PATTERN.search(court_id)
        if not match:
            return NEUTRAL_SCORE
        number = int(match.group())
        if not MIN_COURT_NUMBER <= number <= MAX_COURT_NUMBER:
            return NEUTRAL_SCORE
        score = 1.0 - ((number - MIN_COURT_NUMBER) / (MAX_COURT_NUMBER - MIN_COURT_NUMBER)) * (
            POSITION_SPREAD
        )
        return max(MIN_POSITION_SCORE, score)

    @staticmethod
    def _build_reason(court_id: str, components: ScoreComponents) -> str:
        reasons = ["available" if components.availability == 1.0 else "not available"]

        if components.historical > 0.7:
            reasons.append("high historical success")
        elif components.historical < 0.3:
            reasons.append("low historical success")

        if components.preference > 0.7:
            reasons.append("preferred court")
        elif components.preference < 0.4:
            reasons.append("non-preferred court")

        if components.position > 0.7:
            reasons.append("good position")

        return f"Court {court_id}: {', '.join(reasons)}"

    def get_best_court(self, scores: Sequence[CourtScore]) -> str | None:
        """First (highest-scoring) available court, or None when no court is available."""
        for score in scores:
            if score.components.availability == 1.0:
                logger.info(f"Selected best court {score.court_id} ({score.score:.3f}): {score.reason}")
                return score.court_id
        return None

    def update_weights(self, **weights: float) -> None:
        self.weights = self.weights.model_copy(update=weights)
        logger.info(f"Updated scoring weights: {self.weights.model_dump()}")

    def get_pattern(self, court_id: str, time_slot: str, day_of_week: int) -> BookingPattern | None:
        with self._lock:
            pattern = self._patterns.get((court_id, time_slot, day_of_week))
            return pattern.model_copy() if pattern else None

    def update_pattern(
        self, court_id: str, time_slot: str, day_of_week: int, success: bool
    ) -> BookingPattern:
        """
        Record one booking outcome as a running mean for (court, time, day).

        Returns:
            A snapshot of the updated pattern.
        """
        key = (court_id, time_slot, day_of_week)
        outcome = 1.0 if success else 0.0
        with self._lock:
            existing = self._patterns.get(key)
            if existing is None:
                pattern = BookingPattern(
                    court_id=court_id,
                    time_slot=time_slot,
                    day_of_week=day_of_week,
                    success_rate=outcome,
                    total_attempts=1,
                    last_updated=utcnow(),
                )
            else:
                total_attempts = existing.total_attempts + 1
                pattern = existing.model_copy(
                    update={
                        "success_rate": (
                            existing.success_rate * existing.total_attempts + outcome
                        )
                        / total_attempts,
                        "total_attempts": total_attempts,
                        "last_updated": utcnow(),
                    }
                )
            self._patterns[key] = pattern

        logger.debug(
            f"Pattern {court_id}@{time_slot} day {day_of_week}: success={success}, "
            f"rate={pattern.success_rate:.3f}, attempts={pattern.total_attempts}"
        )
        return pattern.model_copy()

    def load_patterns(self, patterns: Iterable[BookingPattern]) -> None:
        """Replace the whole in-memory pattern map."""
        loaded = {(p.court_id, p.time_slot, p.day_of_week): p.model_copy() for p in patterns}
        with self._lock:
            self._patterns = loaded
        logger.info(f"Loaded {len(loaded)} booking patterns")

    def export_patterns(self) -> list[BookingPattern]:
        with self._lock:
            return [p.model_copy() for p in self._patterns.values()]

    def reset(self) -> None:
        with self._lock:
            self._patterns.clear()

    def get_statistics(self) -> dict[str, object]:
        patterns = self.export_patterns()
        if not patterns:
            return {
                "total_patterns": 0,
                "average_success_rate": 0.0,
                "most_successful_court": None,
                "least_successful_court": None,
            }

        by_court: dict[str, list[float]] = {}
        for pattern in patterns:
            by_court.setdefault(pattern.court_id, []).append(pattern.success_rate)
        court_rates = {court: sum(rates) / len(rates) for court, rates in by_court.items()}

        return {
            "total_patterns": len(patterns),
            "average_success_rate": sum(p.success_rate for p in patterns) / len(patterns),
            "most_successful_court": max(court_rates, key=court_rates.__getitem__),
            "least_successful_court": min(court_rates, key=court_rates.__getitem__),
        }
