import asyncio
import logging
from collections.abc import Iterable, Mapping

from courtbooker.exceptions import BookingExecutionError
from courtbooker.models.schemas import Slot
from courtbooker.providers.base import BookingExecutor, CalendarDataSource
from courtbooker.services import time_calculus

logger = logging.getLogger(__name__)

DEFAULT_COURTS = ("court-1", "court-2", "court-3", "court-4")


class MockCalendarProvider(CalendarDataSource, BookingExecutor):
    """
    In-memory calendar for running the service without a real booking system.

    Every court is open on a half-hour grid inside business hours unless the
    standing schedule marks a time as booked on every date. Completed bookings
    are recorded per date in ``reservations`` so subsequent reads see them.
    A failed step clears the current selection.

    Usage:
        provider = MockCalendarProvider(booked={"court-1": ["14:00"]})
    """

    def __init__(
        self,
        courts: Iterable[str] = DEFAULT_COURTS,
        booked: Mapping[str, Iterable[str]] | None = None,
        slot_interval: int = 30,
        business_start: str = "06:00",
        business_end: str = "23:00",
        action_delay_seconds: float = 0.0,
    ) -> None:
        self.courts = list(courts)
        self.booked: dict[str, set[str]] = {
            court_id: set(times) for court_id, times in (booked or {}).items()
        }
        self.slot_interval = slot_interval
        self.business_start = business_start
        self.business_end = business_end
        self.action_delay_seconds = action_delay_seconds
        self.reservations: set[tuple[str, str, str]] = set()
        self.selected_slots: list[Slot] = []
        self.completed_bookings: list[list[Slot]] = []
        self._in_checkout = False

    async def list_available_courts(self, target_date: str) -> list[str]:
        await self._delay()
        return list(self.courts)

    async def get_slot_states(self, court_id: str, target_date: str, times: list[str]) -> list[Slot]:
        await self._delay()
        if court_id not in self.courts:
            return []

        slots = []
        for value in times:
            if not self._on_calendar(value):
                continue
            slots.append(
                Slot(
                    date=target_date,
                    start_time=value,
                    court_id=court_id,
                    is_available=not self._is_booked(court_id, target_date, value),
                    element_selector=f"[data-court='{court_id}'][data-time='{value}']",
                )
            )
        return slots

    async def select_slot(self, slot: Slot) -> None:
        await self._delay()
        if self._is_booked(slot.court_id, slot.date, slot.start_time):
            self._clear_selection()
            raise BookingExecutionError(
                f"Slot {slot.start_time} on court {slot.court_id} is no longer available"
            )
        self.selected_slots.append(slot)
        logger.debug(f"Mock selected slot {slot.court_id}@{slot.start_time}")

    async def proceed_to_checkout(self) -> None:
        await self._delay()
        if not self.selected_slots:
            self._clear_selection()
            raise BookingExecutionError("No slots selected before checkout")
        self._in_checkout = True

    async def complete_booking(self) -> None:
        await self._delay()
        if not self._in_checkout:
            self._clear_selection()
            raise BookingExecutionError("Checkout was not started")

        for slot in self.selected_slots:
            self.reservations.add((slot.court_id, slot.date, slot.start_time))
        self.completed_bookings.append(list(self.selected_slots))
        logger.info(
            f"Mock booking completed: "
            f"{[(s.court_id, s.start_time) for s in self.selected_slots]}"
        )
        self._clear_selection()

    async def reset_selection(self) -> None:
        if self.selected_slots:
            logger.debug(f"Mock selection reset: {len(self.selected_slots)} slots dropped")
        self._clear_selection()

    def _is_booked(self, court_id: str, target_date: str, value: str) -> bool:
        if value in self.booked.get(court_id, set()):
            return True
        return (court_id, target_date, value) in self.reservations

    def _clear_selection(self) -> None:
        self.selected_slots = []
        self._in_checkout = False

    def _on_calendar(self, value: str) -> bool:
        if not time_calculus.is_within_business_hours(
            value, self.business_start, self.business_end
        ):
            return False
        offset = time_calculus.to_minutes(value) - time_calculus.to_minutes(self.business_start)
        return offset % self.slot_interval == 0

    async def _delay(self) -> None:
        if self.action_delay_seconds:
            await asyncio.sleep(self.action_delay_seconds)
