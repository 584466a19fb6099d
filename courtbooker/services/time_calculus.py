"""
Time and date arithmetic for the booking calendar.

All functions are pure. Times are ``HH:MM`` strings on a 24-hour clock; any
function that receives a malformed time raises InvalidTimeFormatError.
Same-day arithmetic wraps modulo 24 hours (``23:30`` + 60 minutes is ``00:30``).
"""

import logging
import math
import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import NamedTuple

import pytz

from courtbooker.exceptions import InvalidTimeFormatError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Berlin"
DEFAULT_DAYS_AHEAD = 20
SLOT_DURATION_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


class ParsedTime(NamedTuple):
    hours: int
    minutes: int


class NeighborSlots(NamedTuple):
    before: str
    after: str


def is_valid_time(value: str) -> bool:
    return isinstance(value, str) and TIME_PATTERN.match(value) is not None


def parse_time(value: str) -> ParsedTime:
    if not is_valid_time(value):
        raise InvalidTimeFormatError(value)
    hours, minutes = value.split(":")
    return ParsedTime(int(hours), int(minutes))


def to_minutes(value: str) -> int:
    """Minutes since midnight for an HH:MM string."""
    hours, minutes = parse_time(value)
    return hours * 60 + minutes


def format_minutes(total_minutes: int) -> str:
    """Format minutes since midnight as HH:MM, wrapping across day boundaries."""
    normalized = total_minutes % MINUTES_PER_DAY
    return f"{normalized // 60:02d}:{normalized % 60:02d}"


def add_minutes_to_time(value: str, minutes: int) -> str:
    return format_minutes(to_minutes(value) + minutes)


def generate_time_slots(
    start_time: str,
    duration_minutes: int = 60,
    slot_interval_minutes: int = SLOT_DURATION_MINUTES,
) -> list[str]:
    """
    Generate the atomic slot start times that make up one session.

    Args:
        start_time: Session start in HH:MM format.
        duration_minutes: Total session length.
        slot_interval_minutes: Size of one atomic slot.

    Returns:
        ``ceil(duration / interval)`` chronologically ordered HH:MM strings.
    """
    start = to_minutes(start_time)
    count = math.ceil(duration_minutes / slot_interval_minutes)
    slots = [format_minutes(start + i * slot_interval_minutes) for i in range(count)]
    logger.debug(
        f"Generated {count} time slots from {start_time} "
        f"(duration={duration_minutes}, interval={slot_interval_minutes}): {slots}"
    )
    return slots


def calculate_neighbor_slots(
    start_time: str,
    duration_minutes: int = 60,
    slot_interval_minutes: int = SLOT_DURATION_MINUTES,
) -> NeighborSlots:
    """
    Calculate the slot immediately before a session and the one right after it.

    ``before`` is one atomic interval earlier than the start; ``after`` begins
    when the session ends. Both wrap across midnight rather than failing.
    """
    start = to_minutes(start_time)
    return NeighborSlots(
        before=format_minutes(start - slot_interval_minutes),
        after=format_minutes(start + duration_minutes),
    )


def is_within_business_hours(
    value: str, business_start: str = "06:00", business_end: str = "23:00"
) -> bool:
    """Inclusive start, exclusive end."""
    return to_minutes(business_start) <= to_minutes(value) < to_minutes(business_end)


def get_time_difference_in_minutes(first: str, second: str) -> int:
    """Absolute same-day difference between two times (no wraparound)."""
    return abs(to_minutes(second) - to_minutes(first))


def calculate_booking_date(
    days_ahead: int = DEFAULT_DAYS_AHEAD,
    timezone: str = DEFAULT_TIMEZONE,
    now: datetime | None = None,
) -> str:
    """
    Calculate the target booking date as today (in ``timezone``) plus ``days_ahead``.

    Args:
        days_ahead: Number of days to add.
        timezone: IANA timezone name used to decide what "today" is.
        now: Optional aware or naive-UTC datetime, for deterministic callers.

    Returns:
        Date string in YYYY-MM-DD format.
    """
    tz = pytz.timezone(timezone)
    if now is None:
        now = datetime.now(pytz.utc)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    today = now.astimezone(tz).date()
    target = today + timedelta(days=days_ahead)
    logger.debug(
        f"Calculated booking date {target.isoformat()} "
        f"(today={today.isoformat()}, days_ahead={days_ahead}, timezone={timezone})"
    )
    return target.isoformat()


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def day_of_week(value: str | date) -> int:
    """Day of week with 0=Sunday ... 6=Saturday."""
    return parse_date(value).isoweekday() % 7


def is_weekend(value: str | date) -> bool:
    return parse_date(value).weekday() >= 5


def is_business_day(value: str | date, holidays: Iterable[date] | None = None) -> bool:
    target = parse_date(value)
    return not is_weekend(target) and target not in set(holidays or ())


def get_next_business_day(value: str | date, holidays: Iterable[date] | None = None) -> date:
    holiday_set = set(holidays or ())
    candidate = parse_date(value) + timedelta(days=1)
    while not is_business_day(candidate, holiday_set):
        candidate += timedelta(days=1)
    return candidate


def format_date_for_display(value: str | date) -> str:
    return parse_date(value).strftime("%A, %d. %B %Y")


def generate_alternative_time_slots(
    preferred_time: str,
    range_minutes: int,
    slot_interval: int = SLOT_DURATION_MINUTES,
    business_start: str = "06:00",
    business_end: str = "23:00",
) -> list[str]:
    """Times on a fixed grid within ``range_minutes`` of the preferred time, in business hours."""
    preferred = to_minutes(preferred_time)
    alternatives = []
    offset = -range_minutes
    while offset <= range_minutes:
        candidate = preferred + offset
        if 0 <= candidate < MINUTES_PER_DAY:
            value = format_minutes(candidate)
            if is_within_business_hours(value, business_start, business_end):
                alternatives.append(value)
        offset += slot_interval
    return alternatives
