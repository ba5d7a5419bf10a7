"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration for the booking service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = Field(default="resource-booking", description="Service name used in logs and health checks")
    database_url: str = Field(
        default="sqlite:///./resource_booking.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=True,
        description="Whether the service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    auto_provision_users: bool = Field(
        default=True,
        description="Create a 'user' account on first sight of an authenticated e-mail.",
    )
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    stats_cache_ttl: int = Field(default=30, description="TTL (s) for cached utilization statistics")
    monthly_capacity_hours: int = Field(
        default=160,
        gt=0,
        description="Bookable hours per resource per month (20 working days of 8h) used for utilization rates.",
    )
    audit_log_dir: str = Field(default="logs", description="Directory for HTTP audit logs")
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics on /metrics")

    service_port: int = 8082


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
