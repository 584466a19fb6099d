from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from courtbooker.models.schemas import (
    BookingResult,
    CacheMetrics,
    ScoringWeights,
    TimePreference,
    TimeSlot,
)
from courtbooker.services import time_calculus
from courtbooker.services.booking_service import booking_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


class RunBookingRequest(BaseModel):
    """Per-run overrides; omitted fields fall back to the environment settings."""

    days_ahead: int | None = None
    target_start_time: str | None = None
    duration: int | None = None
    max_retries: int | None = None
    dry_run: bool | None = None
    preferred_courts: list[str] | None = None
    enable_pattern_learning: bool | None = None
    fallback_time_range: int | None = None
    time_preferences: list[TimePreference] | None = None
    scoring_weights: ScoringWeights | None = None


@router.post("/run", response_model=BookingResult)
async def run_booking(request: RunBookingRequest) -> BookingResult:
    config = booking_service.build_config(**request.model_dump())
    return await booking_service.run_booking(config)


@router.get("/alternatives", response_model=list[TimeSlot])
async def get_alternatives(
    preferred_time: str,
    fallback_range: int | None = Query(default=None, ge=0, le=480),
    slot_interval: int | None = Query(default=None, gt=0),
) -> list[TimeSlot]:
    if not time_calculus.is_valid_time(preferred_time):
        raise HTTPException(
            status_code=422,
            detail=f"Invalid time format: {preferred_time!r}. Expected HH:MM format.",
        )
    return booking_service.get_alternatives(preferred_time, fallback_range, slot_interval)


@router.get("/cache", response_model=CacheMetrics)
async def get_cache_metrics() -> CacheMetrics:
    return booking_service.cache.get_metrics()


@router.delete("/cache")
async def clear_cache() -> dict[str, str]:
    booking_service.cache.clear()
    return {"status": "cleared"}
