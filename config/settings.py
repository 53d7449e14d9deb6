"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # solved.ac API configuration
    solvedac_base_url: str = "https://solved.ac/api/v3"
    api_timeout_seconds: float = 30.0
    api_max_retries: int = 3
    api_retry_delay_seconds: float = 1.0
    api_rate_limit_multiplier: int = 2   # 429 backs off retry_delay * multiplier

    # Cache TTLs per category (seconds)
    user_info_cache_ttl_seconds: float = 300          # 5 minutes
    user_top100_cache_ttl_seconds: float = 600        # 10 minutes
    user_additional_cache_ttl_seconds: float = 1800   # 30 minutes
    user_organizations_cache_ttl_seconds: float = 1800

    # Expiration sweep
    cache_sweep_interval_seconds: float = 300
    cache_sweep_batch_size: int = 50
    cache_sweep_max_duration_seconds: float = 0.010

    # Request coalescing
    coalesce_timeout_seconds: float = 30.0

    # Adaptive concurrency
    initial_concurrency: int = 5
    concurrency_min_limit: int = 2
    concurrency_max_limit: int = 20
    response_time_window_size: int = 50
    min_response_time_window_size: int = 10
    concurrency_adjustment_threshold_seconds: float = 0.5
    concurrency_decrease_threshold_seconds: float = 1.0
    concurrency_adjustment_cooldown_seconds: float = 5.0
    max_successive_increases: int = 3
    p95_percentile_ratio: float = 0.8

    # Diagnostics server
    log_level: str = "INFO"
    app_version: str = "v1.0.0"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
