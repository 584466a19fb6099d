"""
Slot discovery against a CalendarDataSource.

Reads every court's slot states around the requested times and groups
consecutive available slots into bookable pairs.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence

from courtbooker.models.schemas import CourtSearchResult, Slot, SlotPair
from courtbooker.providers.base import CalendarDataSource
from courtbooker.services import time_calculus

logger = logging.getLogger(__name__)


def find_available_slot_pairs(slots: Iterable[Slot], interval: int = 30) -> list[SlotPair]:
    """
    Group consecutive available slots into pairs, independently per court.

    Two slots are consecutive when the second starts exactly ``interval``
    minutes after the first. Overlapping pairs are all kept, so three free
    consecutive slots yield two pairs.
    """
    by_court: dict[str, list[Slot]] = defaultdict(list)
    for slot in slots:
        if slot.is_available:
            by_court[slot.court_id].append(slot)

    pairs = []
    for court_id, court_slots in by_court.items():
        by_minutes = {time_calculus.to_minutes(s.start_time): s for s in court_slots}
        for start in sorted(by_minutes):
            following = by_minutes.get(start + interval)
            if following is not None:
                pairs.append(SlotPair(slot1=by_minutes[start], slot2=following, court_id=court_id))
    return pairs


class SlotSearcher:
    def __init__(
        self,
        calendar: CalendarDataSource,
        slot_interval: int = time_calculus.SLOT_DURATION_MINUTES,
        neighbor_padding: int = 2,
    ) -> None:
        """
        Args:
            calendar: Source of court and slot states.
            slot_interval: Minutes between consecutive slots of a pair.
            neighbor_padding: Extra intervals read on each side of the requested
                times so isolation checks can see the surrounding schedule.
        """
        self.calendar = calendar
        self.slot_interval = slot_interval
        self.neighbor_padding = neighbor_padding

    async def search(self, target_date: str, target_times: Sequence[str]) -> CourtSearchResult:
        """
        Discover available courts and slot pairs for the requested start times.

        Never raises: a failing calendar yields an empty result whose ``error``
        carries the failure message.
        """
        requested = {time_calculus.to_minutes(value) for value in target_times}
        read_times = self._padded_times(requested)

        try:
            courts = await self.calendar.list_available_courts(target_date)
            all_slots: list[Slot] = []
            for court_id in courts:
                all_slots.extend(
                    await self.calendar.get_slot_states(court_id, target_date, read_times)
                )
        except Exception as e:
            logger.error(f"Slot discovery failed for {target_date} at {list(target_times)}: {e}")
            return CourtSearchResult(error=str(e))

        requested_slots = [
            slot for slot in all_slots if time_calculus.to_minutes(slot.start_time) in requested
        ]
        pairs = find_available_slot_pairs(requested_slots, self.slot_interval)
        available_courts = list(dict.fromkeys(pair.court_id for pair in pairs))

        logger.info(
            f"Found {len(pairs)} available pairs on {len(available_courts)}/{len(courts)} courts "
            f"for {target_date} at {list(target_times)}"
        )
        return CourtSearchResult(
            available_courts=available_courts,
            total_slots=sum(1 for slot in requested_slots if slot.is_available),
            available_pairs=pairs,
            slots=all_slots,
        )

    def _padded_times(self, requested: set[int]) -> list[str]:
        padding = self.neighbor_padding * self.slot_interval
        positions: set[int] = set()
        for start in requested:
            for offset in range(-padding, padding + 1, self.slot_interval):
                candidate = start + offset
                if 0 <= candidate < time_calculus.MINUTES_PER_DAY:
                    positions.add(candidate)
        return [time_calculus.format_minutes(position) for position in sorted(positions)]
