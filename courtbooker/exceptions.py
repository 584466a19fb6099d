"""
Exception hierarchy for courtbooker.

Expected runtime outcomes (no slots, isolation, failed attempts) are reported
through result objects. These exceptions are reserved for precondition
violations and for collaborators signalling transport/execution failures.
"""


class CourtBookerError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeFormatError(CourtBookerError, ValueError):
    """Raised when a time string is not a valid HH:MM value."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Invalid time format: {value!r}. Expected HH:MM format.")


class CalendarTransportError(CourtBookerError):
    """Raised by a calendar data source when slot data cannot be fetched."""


class BookingExecutionError(CourtBookerError):
    """Raised by a booking executor when a click/checkout step fails."""
