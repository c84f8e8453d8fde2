"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Scheduler policy
    max_stage_attempts: int = 3
    hard_iteration_ceiling: int = 60
    no_progress_threshold: int = 40

    # Fuel safety policy
    safety_margin_days: float = 3.0
    fuel_safety_factor: float = 1.15
    mgo_safety_margin_percent: float = 12.0

    # Voyage defaults
    default_speed_knots: float = 14.0
    timeline_interval_hours: float = 12.0
    max_port_deviation_nm: float = 150.0
    max_bunker_stops: int = 3

    # Collaborator timeouts (milliseconds)
    route_timeout_ms: int = 15000
    weather_timeout_ms: int = 30000
    price_timeout_ms: int = 10000

    # Cache TTLs (seconds)
    route_cache_ttl_seconds: int = 3600

    # External APIs
    marine_weather_url: str = "https://marine-api.open-meteo.com/v1/marine"
    forecast_weather_url: str = "https://api.open-meteo.com/v1/forecast"

    # External planner
    planner_enabled: bool = True
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
