from pydantic_settings import BaseSettings, SettingsConfigDict

from courtbooker.models.schemas import BookingConfig, ScoringWeights


class Settings(BaseSettings):
    timezone: str = "Europe/Berlin"

    days_ahead: int = 20
    target_start_time: str = "14:00"
    duration_minutes: int = 60
    max_retries: int = 3
    dry_run: bool = True
    simulate_delay_seconds: float = 1.0

    preferred_courts: str = ""
    pattern_learning_enabled: bool = False
    fallback_time_range: int = 120
    slot_interval_minutes: int = 30

    business_hours_start: str = "06:00"
    business_hours_end: str = "23:00"

    cache_enabled: bool = True
    cache_max_size: int = 100
    cache_ttl_seconds: float = 3600.0
    cache_debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./courtbooker.db"
    pattern_max_age_days: int = 90

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def preferred_court_list(self) -> list[str]:
        return [c.strip() for c in self.preferred_courts.split(",") if c.strip()]

    def booking_config(self, **overrides: object) -> BookingConfig:
        """Build a BookingConfig from the environment, with optional per-run overrides."""
        values: dict[str, object] = {
            "days_ahead": self.days_ahead,
            "target_start_time": self.target_start_time,
            "duration": self.duration_minutes,
            "max_retries": self.max_retries,
            "dry_run": self.dry_run,
            "timezone": self.timezone,
            "preferred_courts": self.preferred_court_list(),
            "enable_pattern_learning": self.pattern_learning_enabled,
            "fallback_time_range": self.fallback_time_range,
            "slot_interval": self.slot_interval_minutes,
            "scoring_weights": ScoringWeights(),
            "simulate_delay_seconds": self.simulate_delay_seconds,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BookingConfig(**values)


settings = Settings()
