from fastapi import APIRouter

from courtbooker.models.schemas import BookingPattern
from courtbooker.services.booking_service import booking_service

router = APIRouter(tags=["patterns"])


@router.get("/patterns", response_model=list[BookingPattern])
async def list_patterns(court_id: str | None = None) -> list[BookingPattern]:
    patterns = booking_service.scorer.export_patterns()
    if court_id:
        patterns = [p for p in patterns if p.court_id == court_id]
    return sorted(patterns, key=lambda p: (p.court_id, p.day_of_week, p.time_slot))


@router.get("/patterns/statistics")
async def pattern_statistics() -> dict[str, object]:
    return booking_service.scorer.get_statistics()


@router.get("/analytics")
async def analytics_summary() -> dict[str, object]:
    return booking_service.analytics.get_summary()
