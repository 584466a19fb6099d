from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the database schema (timestamp without timezone)."""
    return datetime.now(UTC).replace(tzinfo=None)


class ErrorCategory(str, Enum):
    CONFIGURATION = "configuration"
    DISCOVERY_EMPTY = "discovery_empty"
    ISOLATION_EXHAUSTED = "isolation_exhausted"
    EXECUTION = "execution"
    TRANSPORT = "transport"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CANCELLED = "cancelled"


class OrchestratorState(str, Enum):
    IDLE = "idle"
    VALIDATING_CONFIG = "validating_config"
    CONFIG_INVALID = "config_invalid"
    ATTEMPTING = "attempting"
    RETRY_WAIT = "retry_wait"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str = Field(..., description="Booking date in YYYY-MM-DD format")
    start_time: str = Field(..., description="Slot start time in HH:MM format")
    court_id: str
    is_available: bool
    element_selector: str | None = None


class SlotPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot1: Slot
    slot2: Slot
    court_id: str

    @model_validator(mode="after")
    def _same_court(self) -> "SlotPair":
        if not (self.slot1.court_id == self.slot2.court_id == self.court_id):
            raise ValueError(
                f"Slot pair spans courts: {self.slot1.court_id}, {self.slot2.court_id}, "
                f"{self.court_id}"
            )
        return self


class TimePreference(BaseModel):
    start_time: str
    priority: int = Field(default=5, description="Priority 1-10, higher is preferred")
    flexibility: int = Field(default=30, description="Acceptable deviation in minutes")


class TimeSlot(BaseModel):
    start_time: str
    end_time: str
    priority: int
    distance_from_preferred: int


class BookingPattern(BaseModel):
    court_id: str
    time_slot: str
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday ... 6=Saturday")
    success_rate: float = Field(..., ge=0.0, le=1.0)
    total_attempts: int = Field(..., ge=0)
    last_updated: datetime = Field(default_factory=utcnow)


class ScoringWeights(BaseModel):
    availability: float = 0.4
    historical: float = 0.3
    preference: float = 0.2
    position: float = 0.1


class ScoreComponents(BaseModel):
    availability: float
    historical: float
    preference: float
    position: float


class CourtScore(BaseModel):
    court_id: str
    score: float
    components: ScoreComponents
    reason: str


class CacheMetrics(BaseModel):
    total_queries: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    hit_rate: float = 0.0
    avg_query_time_ms: float = 0.0
    cache_size: int = 0
    memory_usage_mb: float = 0.0
    ttl_evictions: int = 0
    lru_evictions: int = 0
    top_hit_keys: list[str] = Field(default_factory=list)


class IsolationCheckResult(BaseModel):
    has_isolation: bool
    isolated_slots: list[Slot] = Field(default_factory=list)
    recommendation: str


class PairAnalysis(BaseModel):
    pair: SlotPair
    isolation: IsolationCheckResult


class CourtSearchResult(BaseModel):
    available_courts: list[str] = Field(default_factory=list)
    total_slots: int = 0
    available_pairs: list[SlotPair] = Field(default_factory=list)
    slots: list[Slot] = Field(
        default_factory=list, description="Every slot read, including unavailable ones"
    )
    error: str | None = Field(
        default=None, description="Transport failure that emptied the result, if any"
    )


class BookingConfig(BaseModel):
    """
    Configuration for one orchestration run.

    Values are not range-checked here. ConfigValidator reports invalid
    values, and the orchestrator turns them into a failed BookingResult.
    """

    model_config = ConfigDict(frozen=True)

    days_ahead: int = 20
    target_start_time: str = "14:00"
    duration: int = Field(default=60, description="Session duration in minutes")
    max_retries: int = 3
    dry_run: bool = True

    timezone: str = "Europe/Berlin"
    preferred_courts: list[str] = Field(default_factory=list)
    enable_pattern_learning: bool = False
    fallback_time_range: int = 120
    slot_interval: int = Field(default=30, description="Atomic slot size in minutes")
    time_preferences: list[TimePreference] = Field(default_factory=list)
    scoring_weights: ScoringWeights = Field(default_factory=ScoringWeights)
    simulate_delay_seconds: float = 1.0
    neighbor_padding: int = Field(
        default=2, description="Extra intervals read on each side for isolation checks"
    )


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class BookingResult(BaseModel):
    success: bool
    booked_pair: SlotPair | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    retry_attempts: int = 0
    degraded_selection: bool = False
    timestamp: datetime = Field(default_factory=utcnow)


class EventType(str, Enum):
    RUN_STARTED = "run_started"
    ATTEMPT_STARTED = "attempt_started"
    ATTEMPT_SUCCEEDED = "attempt_succeeded"
    ATTEMPT_FAILED = "attempt_failed"
    RUN_COMPLETED = "run_completed"


class BookingEvent(BaseModel):
    event_type: EventType
    attempt: int = 0
    timestamp: datetime = Field(default_factory=utcnow)
    success: bool | None = None
    court_id: str | None = None
    date: str | None = None
    start_time: str | None = None
    error: str | None = None
    error_category: ErrorCategory | None = None
    duration_ms: float | None = None
