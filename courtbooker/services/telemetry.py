"""
Fire-and-forget observers for booking attempts.

The orchestrator reports every run, attempt and outcome to a TelemetrySink.
Sinks must never influence the booking result; the orchestrator logs and
drops any exception a sink raises.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import Counter, defaultdict

from courtbooker.models.schemas import BookingEvent, EventType

logger = logging.getLogger(__name__)


class TelemetrySink(ABC):
    @abstractmethod
    def record(self, event: BookingEvent) -> None:
        pass


class NullTelemetry(TelemetrySink):
    def record(self, event: BookingEvent) -> None:
        pass


class LoggingTelemetry(TelemetrySink):
    """Writes each event as one structured log line."""

    def record(self, event: BookingEvent) -> None:
        fields = event.model_dump(exclude_none=True, exclude={"event_type", "timestamp"})
        logger.info(f"booking_event={event.event_type.value} {fields}")


class CompositeTelemetry(TelemetrySink):
    """Fans one event out to several sinks; a failing sink does not stop the others."""

    def __init__(self, *sinks: TelemetrySink) -> None:
        self.sinks = list(sinks)

    def record(self, event: BookingEvent) -> None:
        for sink in self.sinks:
            try:
                sink.record(event)
            except Exception as e:
                logger.warning(f"Telemetry sink {type(sink).__name__} failed: {e}")


class BookingAnalytics(TelemetrySink):
    """
    Aggregates attempt outcomes for the analytics endpoint.

    Tracks attempt-level success rate, average attempt duration, failure
    counts by error category and per-court success counts.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._runs = 0
            self._attempts = 0
            self._successes = 0
            self._timed_attempts = 0
            self._total_duration_ms = 0.0
            self._error_categories: Counter[str] = Counter()
            self._court_attempts: Counter[str] = Counter()
            self._court_successes: defaultdict[str, int] = defaultdict(int)

    def record(self, event: BookingEvent) -> None:
        with self._lock:
            if event.event_type == EventType.RUN_STARTED:
                self._runs += 1
                return
            if event.event_type not in (EventType.ATTEMPT_SUCCEEDED, EventType.ATTEMPT_FAILED):
                return

            self._attempts += 1
            if event.duration_ms is not None:
                self._timed_attempts += 1
                self._total_duration_ms += event.duration_ms
            if event.court_id:
                self._court_attempts[event.court_id] += 1

            if event.event_type == EventType.ATTEMPT_SUCCEEDED:
                self._successes += 1
                if event.court_id:
                    self._court_successes[event.court_id] += 1
            elif event.error_category is not None:
                self._error_categories[event.error_category.value] += 1

    def get_summary(self) -> dict[str, object]:
        with self._lock:
            return {
                "total_runs": self._runs,
                "total_attempts": self._attempts,
                "successful_attempts": self._successes,
                "success_rate": self._successes / self._attempts if self._attempts else 0.0,
                "average_response_time_ms": (
                    self._total_duration_ms / self._timed_attempts if self._timed_attempts else 0.0
                ),
                "error_categories": dict(self._error_categories),
                "court_success": {
                    court_id: {
                        "attempts": attempts,
                        "successes": self._court_successes[court_id],
                    }
                    for court_id, attempts in self._court_attempts.items()
                },
            }
