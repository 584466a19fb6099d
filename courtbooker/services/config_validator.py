import logging

import pytz

from courtbooker.models.schemas import BookingConfig, ValidationResult
from courtbooker.services import time_calculus

logger = logging.getLogger(__name__)

MAX_DAYS_AHEAD = 365
TYPICAL_MAX_DAYS_AHEAD = 30
MAX_DURATION = 240
SHORT_DURATION = 30
LONG_DURATION = 180
HIGH_RETRY_COUNT = 10
MAX_FALLBACK_RANGE = 480
MAX_FLEXIBILITY = 120
MAX_NEIGHBOR_PADDING = 8


class ConfigValidator:
    """
    Checks a BookingConfig before any attempt runs.

    Errors make the config unusable; warnings flag values that work but are
    probably unintended.
    """

    def __init__(self, business_start: str = "06:00", business_end: str = "23:00") -> None:
        self.business_start = business_start
        self.business_end = business_end

    def validate(self, config: BookingConfig) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        recommendations: list[str] = []

        if not 1 <= config.days_ahead <= MAX_DAYS_AHEAD:
            errors.append(f"days_ahead must be between 1 and {MAX_DAYS_AHEAD}, got {config.days_ahead}")
        elif config.days_ahead > TYPICAL_MAX_DAYS_AHEAD:
            warnings.append(
                f"days_ahead={config.days_ahead} is unusually far out; most calendars open "
                f"bookings at most {TYPICAL_MAX_DAYS_AHEAD} days ahead"
            )

        if not time_calculus.is_valid_time(config.target_start_time):
            errors.append(
                f"Invalid target_start_time: {config.target_start_time!r}. Expected HH:MM format."
            )
        elif not time_calculus.is_within_business_hours(
            config.target_start_time, self.business_start, self.business_end
        ):
            warnings.append(
                f"target_start_time {config.target_start_time} is outside business hours "
                f"({self.business_start}-{self.business_end})"
            )

        if config.slot_interval <= 0:
            errors.append(f"slot_interval must be positive, got {config.slot_interval}")

        if not 0 <= config.neighbor_padding <= MAX_NEIGHBOR_PADDING:
            errors.append(
                f"neighbor_padding must be between 0 and {MAX_NEIGHBOR_PADDING}, "
                f"got {config.neighbor_padding}"
            )

        if not 1 <= config.duration <= MAX_DURATION:
            errors.append(f"duration must be between 1 and {MAX_DURATION} minutes, got {config.duration}")
        else:
            if config.duration < SHORT_DURATION:
                warnings.append(f"duration={config.duration} is shorter than one typical slot")
            elif config.duration > LONG_DURATION:
                warnings.append(f"duration={config.duration} is longer than a typical session")
            if config.slot_interval > 0 and config.duration != 2 * config.slot_interval:
                warnings.append(
                    f"duration={config.duration} is not two slots of {config.slot_interval} minutes; "
                    "sessions are booked as pairs of consecutive slots"
                )
                recommendations.append(f"Use duration={2 * config.slot_interval} for slot pairs")

        if config.max_retries < 1:
            errors.append(f"max_retries must be at least 1, got {config.max_retries}")
        elif config.max_retries > HIGH_RETRY_COUNT:
            warnings.append(
                f"max_retries={config.max_retries} with exponential backoff can wait a very long time"
            )

        if config.timezone not in pytz.all_timezones_set:
            errors.append(f"Unknown timezone: {config.timezone!r}")

        if not 0 <= config.fallback_time_range <= MAX_FALLBACK_RANGE:
            errors.append(
                f"fallback_time_range must be between 0 and {MAX_FALLBACK_RANGE}, "
                f"got {config.fallback_time_range}"
            )
        elif config.fallback_time_range == 0:
            recommendations.append("Set fallback_time_range to search alternative times")

        weights = config.scoring_weights.model_dump()
        negative = [name for name, value in weights.items() if value < 0]
        if negative:
            errors.append(f"Scoring weights must be non-negative: {', '.join(negative)}")
        elif abs(sum(weights.values()) - 1.0) > 1e-6:
            warnings.append(f"Scoring weights sum to {sum(weights.values()):.2f}, not 1.0")

        for index, preference in enumerate(config.time_preferences):
            if not time_calculus.is_valid_time(preference.start_time):
                errors.append(
                    f"time_preferences[{index}]: invalid start_time {preference.start_time!r}"
                )
            if not 1 <= preference.priority <= 10:
                errors.append(
                    f"time_preferences[{index}]: priority must be 1-10, got {preference.priority}"
                )
            if not 0 <= preference.flexibility <= MAX_FLEXIBILITY:
                errors.append(
                    f"time_preferences[{index}]: flexibility must be 0-{MAX_FLEXIBILITY}, "
                    f"got {preference.flexibility}"
                )

        if not config.preferred_courts:
            recommendations.append("Set preferred_courts to steer court selection")

        if not config.dry_run:
            warnings.append("dry_run is disabled: real bookings will be made")

        result = ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            recommendations=recommendations,
        )
        if errors:
            logger.error(f"Booking configuration invalid: {errors}")
        for warning in warnings:
            logger.warning(f"Booking configuration: {warning}")
        return result
