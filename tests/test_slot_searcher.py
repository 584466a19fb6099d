"""
Tests for SlotSearcher and find_available_slot_pairs in
courtbooker/services/slot_searcher.py.
"""

from unittest.mock import AsyncMock

import pytest

from courtbooker.exceptions import CalendarTransportError
from courtbooker.models.schemas import Slot
from courtbooker.providers.base import CalendarDataSource
from courtbooker.providers.mock_provider import MockCalendarProvider
from courtbooker.services.slot_searcher import SlotSearcher, find_available_slot_pairs

DATE = "2024-06-06"


def slot(start_time: str, available: bool = True, court_id: str = "c1") -> Slot:
    return Slot(date=DATE, start_time=start_time, court_id=court_id, is_available=available)


class TestFindAvailableSlotPairs:
    """Tests for consecutive-pair detection."""

    def test_booked_slot_yields_single_pair(self) -> None:
        slots = [slot("14:00"), slot("14:30"), slot("15:00", available=False)]

        pairs = find_available_slot_pairs(slots, 30)

        assert len(pairs) == 1
        assert pairs[0].slot1.start_time == "14:00"
        assert pairs[0].slot2.start_time == "14:30"
        assert pairs[0].court_id == "c1"

    def test_overlapping_pairs_are_kept(self) -> None:
        slots = [slot("14:00"), slot("14:30"), slot("15:00")]

        pairs = find_available_slot_pairs(slots, 30)

        assert [(p.slot1.start_time, p.slot2.start_time) for p in pairs] == [
            ("14:00", "14:30"),
            ("14:30", "15:00"),
        ]

    def test_interval_must_match_exactly(self) -> None:
        slots = [slot("14:00"), slot("15:00")]

        assert find_available_slot_pairs(slots, 30) == []
        assert len(find_available_slot_pairs(slots, 60)) == 1

    def test_pairs_never_span_courts(self) -> None:
        slots = [slot("14:00", court_id="c1"), slot("14:30", court_id="c2")]

        assert find_available_slot_pairs(slots, 30) == []

    def test_input_order_does_not_matter(self) -> None:
        slots = [slot("14:30"), slot("14:00")]

        pairs = find_available_slot_pairs(slots, 30)

        assert pairs[0].slot1.start_time == "14:00"


class TestSlotSearcher:
    """Tests for discovery against a calendar source."""

    @pytest.mark.asyncio
    async def test_search_with_mock_calendar(self) -> None:
        calendar = MockCalendarProvider(courts=["court-1", "court-2"], booked={"court-2": ["14:30"]})
        searcher = SlotSearcher(calendar, slot_interval=30, neighbor_padding=2)

        result = await searcher.search(DATE, ["14:00", "14:30"])

        assert result.error is None
        assert result.available_courts == ["court-1"]
        assert len(result.available_pairs) == 1
        assert result.available_pairs[0].court_id == "court-1"
        assert result.total_slots == 3
        # 13:00 through 15:30 on both courts
        assert len(result.slots) == 12

    @pytest.mark.asyncio
    async def test_padding_stays_within_day(self) -> None:
        calendar = AsyncMock(spec=CalendarDataSource)
        calendar.list_available_courts.return_value = ["c1"]
        calendar.get_slot_states.return_value = []
        searcher = SlotSearcher(calendar, slot_interval=30, neighbor_padding=2)

        await searcher.search(DATE, ["00:00", "00:30"])

        calendar.get_slot_states.assert_awaited_once_with(
            "c1", DATE, ["00:00", "00:30", "01:00", "01:30"]
        )

    @pytest.mark.asyncio
    async def test_transport_failure_returns_empty_result(self) -> None:
        calendar = AsyncMock(spec=CalendarDataSource)
        calendar.list_available_courts.side_effect = CalendarTransportError("calendar down")
        searcher = SlotSearcher(calendar)

        result = await searcher.search(DATE, ["14:00", "14:30"])

        assert result.available_courts == []
        assert result.total_slots == 0
        assert result.available_pairs == []
        assert result.error == "calendar down"

    @pytest.mark.asyncio
    async def test_no_courts(self) -> None:
        searcher = SlotSearcher(MockCalendarProvider(courts=[]))

        result = await searcher.search(DATE, ["14:00", "14:30"])

        assert result.available_pairs == []
        assert result.error is None
