"""
Tests for API endpoints in courtbooker/api/.

These tests verify the FastAPI endpoints for health checks, booking runs,
alternatives, cache metrics, patterns and analytics using the TestClient.
The shared booking service is pointed at a fresh mock calendar per test.
"""

import pytest
from fastapi.testclient import TestClient

from courtbooker.config import settings
from courtbooker.providers.mock_provider import MockCalendarProvider
from courtbooker.services.booking_service import booking_service


@pytest.fixture
def test_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Create a TestClient for the FastAPI app backed by a mock calendar."""
    from courtbooker.main import app

    monkeypatch.setattr(settings, "simulate_delay_seconds", 0.0)
    provider = MockCalendarProvider()
    booking_service.set_calendar_provider(provider, executor=provider)
    booking_service.scorer.reset()
    booking_service.cache.reset()
    booking_service.analytics.reset()

    return TestClient(app)


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, test_client: TestClient) -> None:
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "courtbooker"

    def test_root_endpoint(self, test_client: TestClient) -> None:
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == "0.1.0"
        assert data["endpoints"]["bookings"] == "/bookings"
        assert data["endpoints"]["analytics"] == "/analytics"


class TestBookingRunEndpoint:
    """Tests for POST /bookings/run."""

    def test_dry_run_succeeds(self, test_client: TestClient) -> None:
        response = test_client.post("/bookings/run", json={"days_ahead": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["retry_attempts"] == 1
        assert data["booked_pair"]["slot1"]["start_time"] == "14:00"
        assert data["booked_pair"]["court_id"] == "court-1"

    def test_overrides_are_applied(self, test_client: TestClient) -> None:
        response = test_client.post(
            "/bookings/run",
            json={"target_start_time": "18:00", "preferred_courts": ["court-2"]},
        )

        data = response.json()
        assert data["success"] is True
        assert data["booked_pair"]["slot1"]["start_time"] == "18:00"
        assert data["booked_pair"]["court_id"] == "court-2"

    def test_scoring_weights_change_chosen_court(self, test_client: TestClient) -> None:
        position_only = {"availability": 0, "historical": 0, "preference": 0, "position": 1}

        default = test_client.post("/bookings/run", json={"preferred_courts": ["court-3"]})
        weighted = test_client.post(
            "/bookings/run",
            json={"preferred_courts": ["court-3"], "scoring_weights": position_only},
        )

        assert default.json()["booked_pair"]["court_id"] == "court-3"
        assert weighted.json()["booked_pair"]["court_id"] == "court-1"
        assert booking_service.scorer.weights.position == 0.1

    def test_invalid_config_is_reported_not_raised(self, test_client: TestClient) -> None:
        response = test_client.post("/bookings/run", json={"target_start_time": "25:00"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error_category"] == "configuration"
        assert data["retry_attempts"] == 0

    def test_pattern_learning_run_is_listed(self, test_client: TestClient) -> None:
        test_client.post("/bookings/run", json={"enable_pattern_learning": True})

        patterns = test_client.get("/patterns").json()
        stats = test_client.get("/patterns/statistics").json()

        assert len(patterns) == 1
        assert patterns[0]["court_id"] == "court-1"
        assert patterns[0]["success_rate"] == 1.0
        assert stats["total_patterns"] == 1

    def test_patterns_filter_by_court(self, test_client: TestClient) -> None:
        test_client.post("/bookings/run", json={"enable_pattern_learning": True})

        assert test_client.get("/patterns", params={"court_id": "court-9"}).json() == []

    def test_analytics_after_run(self, test_client: TestClient) -> None:
        test_client.post("/bookings/run", json={})

        summary = test_client.get("/analytics").json()

        assert summary["total_runs"] == 1
        assert summary["successful_attempts"] == 1


class TestAlternativesEndpoint:
    """Tests for GET /bookings/alternatives."""

    def test_alternatives(self, test_client: TestClient) -> None:
        response = test_client.get("/bookings/alternatives", params={"preferred_time": "14:00"})

        assert response.status_code == 200
        data = response.json()
        assert data[0]["start_time"] == "14:00"
        assert data[0]["priority"] == 10
        assert len(data) > 1

    def test_zero_range(self, test_client: TestClient) -> None:
        response = test_client.get(
            "/bookings/alternatives", params={"preferred_time": "14:00", "fallback_range": 0}
        )

        assert [s["start_time"] for s in response.json()] == ["14:00"]

    def test_invalid_time(self, test_client: TestClient) -> None:
        response = test_client.get("/bookings/alternatives", params={"preferred_time": "2pm"})

        assert response.status_code == 422


class TestCacheEndpoints:
    """Tests for the cache metrics endpoints."""

    def test_cache_metrics_count_queries(self, test_client: TestClient) -> None:
        test_client.get("/bookings/alternatives", params={"preferred_time": "14:00"})
        test_client.get("/bookings/alternatives", params={"preferred_time": "14:00"})

        metrics = test_client.get("/bookings/cache").json()

        assert metrics["total_queries"] == 2
        assert metrics["cache_hits"] == 1
        assert metrics["cache_size"] == 1

    def test_clear_cache(self, test_client: TestClient) -> None:
        test_client.get("/bookings/alternatives", params={"preferred_time": "14:00"})

        response = test_client.delete("/bookings/cache")

        assert response.json() == {"status": "cleared"}
        assert test_client.get("/bookings/cache").json()["cache_size"] == 0
