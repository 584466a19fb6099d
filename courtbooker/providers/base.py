from abc import ABC, abstractmethod

from courtbooker.models.schemas import Slot


class CalendarDataSource(ABC):
    """Read access to a court booking calendar."""

    @abstractmethod
    async def list_available_courts(self, target_date: str) -> list[str]:
        """Court IDs bookable on the given date (YYYY-MM-DD). Empty when there is no data."""
        pass

    @abstractmethod
    async def get_slot_states(self, court_id: str, target_date: str, times: list[str]) -> list[Slot]:
        """
        Slot states for one court at the requested start times.

        Times with no slot on the calendar are simply omitted. Genuine transport
        failures raise CalendarTransportError.
        """
        pass


class BookingExecutor(ABC):
    """Drives the real reservation flow for a chosen slot pair."""

    @abstractmethod
    async def select_slot(self, slot: Slot) -> None:
        pass

    @abstractmethod
    async def proceed_to_checkout(self) -> None:
        pass

    @abstractmethod
    async def complete_booking(self) -> None:
        pass

    @abstractmethod
    async def reset_selection(self) -> None:
        """Drop any partially selected slots and leave checkout after a failed step."""
        pass
