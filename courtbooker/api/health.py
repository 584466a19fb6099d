from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": "courtbooker"}


@router.get("/")
async def root() -> dict[str, str | dict[str, str]]:
    return {
        "service": "CourtBooker - Court Slot Booking Assistant",
        "version": "0.1.0",
        "endpoints": {
            "health": "/health",
            "bookings": "/bookings",
            "patterns": "/patterns",
            "analytics": "/analytics",
        },
    }
