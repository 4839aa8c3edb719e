"""Application configuration managed via environment variables."""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Tempo Scheduling Backend"
    debug: bool = False
    log_level: str = "INFO"
    log_sql: bool = False
    database_url: str = "postgresql+psycopg2://tempo@localhost:5432/tempo"
    # Applied per statement on PostgreSQL; a timed-out attempt surfaces as a transient error.
    db_statement_timeout_ms: int = 15000
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "tempo"
    # Shared store for derived health and milestone state; unset disables caching.
    redis_url: str | None = None
    derived_cache_ttl_seconds: int = 300

    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    sweep_interval_seconds: int = 30
    expiry_interval_minutes: int = 15
    health_snapshot_hour: int = 23
    health_snapshot_minute: int = 55
    jobs_run_on_startup: bool = True
    notifications_enabled: bool = False
    notifications_provider: str = "noop"

    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay_seconds: float = 5.0

    proposal_expiry_hours: int = 48
    slot_granularity_minutes: int = 15
    slot_search_days: int = 14
    default_task_duration_minutes: int = 60
    priority_spacing: Literal["strict", "moderate", "loose"] = "moderate"
    slot_priority_penalty_weight: float = 0.3
    slot_density_penalty_weight: float = 0.2
    slot_density_window_minutes: int = 120
    workday_start_minute: int = 9 * 60
    workday_end_minute: int = 17 * 60
    lunch_start_minute: int = 12 * 60
    lunch_end_minute: int = 13 * 60

    consistency_window_days: int = 14
    efficiency_min_samples: int = 1
    health_history_days: int = 7
    health_good_threshold: float = 80.0
    health_degrading_threshold: float = 60.0
    health_blend: str = "degrading"
    health_late_completion_penalty: float = 5.0
    health_overdue_penalty_per_day: float = 3.0
    health_consistency_gap_penalty: float = 2.0
    health_progress_lag_penalty: float = 10.0
    health_progress_lag_threshold: float = 70.0
    health_ontime_bonus: float = 2.0
    health_early_bonus: float = 4.0
    health_streak_bonus: float = 1.0
    health_weight_progress: float = 0.4
    health_weight_consistency: float = 0.35
    health_weight_efficiency: float = 0.25


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
