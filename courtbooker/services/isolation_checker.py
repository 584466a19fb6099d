"""
Isolation avoidance for slot-pair bookings.

Booking a pair can strand a free neighbouring slot between two unavailable
ones, leaving a single slot nobody can book as a session. The checker looks
one atomic interval before and after the pair and reports every neighbour
that would end up boxed in.

Edge handling: a position outside the operating day (before business start,
at or after business end) is a day boundary and counts as unavailable. A
position inside the day with no known slot is unknown and never counts as
unavailable.
"""

import logging
from collections.abc import Iterable, Sequence

from courtbooker.models.schemas import IsolationCheckResult, PairAnalysis, Slot, SlotPair
from courtbooker.services import time_calculus

logger = logging.getLogger(__name__)


class IsolationChecker:
    def __init__(
        self,
        slot_interval: int = time_calculus.SLOT_DURATION_MINUTES,
        business_start: str = "06:00",
        business_end: str = "23:00",
    ) -> None:
        self.slot_interval = slot_interval
        self._day_start = time_calculus.to_minutes(business_start)
        self._day_end = time_calculus.to_minutes(business_end)

    def check_for_isolation(
        self, target_pair: SlotPair, all_slots: Iterable[Slot]
    ) -> IsolationCheckResult:
        """
        Determine whether booking target_pair would isolate a neighbouring free slot.

        Only slots on the pair's court and date are considered.
        """
        court_slots = {
            time_calculus.to_minutes(slot.start_time): slot
            for slot in all_slots
            if slot.court_id == target_pair.court_id and slot.date == target_pair.slot1.date
        }
        booked = {
            time_calculus.to_minutes(target_pair.slot1.start_time),
            time_calculus.to_minutes(target_pair.slot2.start_time),
        }
        first, last = min(booked), max(booked)

        isolated: list[Slot] = []
        for neighbor_position in (first - self.slot_interval, last + self.slot_interval):
            neighbor = court_slots.get(neighbor_position)
            if neighbor is None or not neighbor.is_available:
                continue
            if self._is_stranded(neighbor_position, court_slots, booked):
                isolated.append(neighbor)

        if isolated:
            times = ", ".join(slot.start_time for slot in isolated)
            recommendation = (
                f"Booking {target_pair.slot1.start_time}-{target_pair.slot2.start_time} on court "
                f"{target_pair.court_id} would create isolated slots: {times}. "
                "Consider alternative courts or times."
            )
        else:
            recommendation = (
                f"Safe to book {target_pair.slot1.start_time}-{target_pair.slot2.start_time} "
                f"on court {target_pair.court_id}: no isolated slots."
            )

        return IsolationCheckResult(
            has_isolation=bool(isolated),
            isolated_slots=isolated,
            recommendation=recommendation,
        )

    def find_best_non_isolating_pair(
        self, pairs: Sequence[SlotPair], all_slots: Sequence[Slot]
    ) -> SlotPair | None:
        """First pair (in the given order) that isolates nothing, or None."""
        for pair in pairs:
            result = self.check_for_isolation(pair, all_slots)
            if not result.has_isolation:
                logger.debug(f"Non-isolating pair found: {result.recommendation}")
                return pair
            logger.debug(result.recommendation)

        logger.info(f"All {len(pairs)} candidate pairs would create isolated slots")
        return None

    def analyze_all_pairs(
        self, pairs: Sequence[SlotPair], all_slots: Sequence[Slot]
    ) -> list[PairAnalysis]:
        return [
            PairAnalysis(pair=pair, isolation=self.check_for_isolation(pair, all_slots))
            for pair in pairs
        ]

    def find_least_isolating_pair(
        self, pairs: Sequence[SlotPair], all_slots: Sequence[Slot]
    ) -> SlotPair | None:
        """Pair with the fewest isolated slots; earlier pairs win ties."""
        analyses = self.analyze_all_pairs(pairs, all_slots)
        if not analyses:
            return None
        best = min(analyses, key=lambda a: len(a.isolation.isolated_slots))
        return best.pair

    def _is_stranded(
        self, position: int, court_slots: dict[int, Slot], booked: set[int]
    ) -> bool:
        return all(
            self._will_be_unavailable(side, court_slots, booked)
            for side in (position - self.slot_interval, position + self.slot_interval)
        )

    def _will_be_unavailable(
        self, position: int, court_slots: dict[int, Slot], booked: set[int]
    ) -> bool:
        if position in booked:
            return True
        if not self._day_start <= position < self._day_end:
            return True
        slot = court_slots.get(position)
        if slot is None:
            return False
        return not slot.is_available
