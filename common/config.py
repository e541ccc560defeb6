"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .pricing import DEFAULT_DISCOUNT_TIERS, DiscountTier


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./rental.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="60/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    item_cache_ttl: int = Field(default=60, description="TTL (s) for cached item listings")
    category_cache_ttl: int = Field(default=300, description="TTL (s) for the cached category list")
    search_min_score: int = Field(
        default=70, ge=0, le=100, description="Lowest fuzzy field score (0-100) that counts as a search hit"
    )

    rental_discount_tiers: List[DiscountTier] = Field(
        default_factory=lambda: list(DEFAULT_DISCOUNT_TIERS),
        description="Long-rental discount tiers, JSON encoded when set from the environment",
    )
    availability_horizon_days: int = Field(
        default=90, ge=1, description="How far ahead quick selection and anchor repair search"
    )
    calendar_max_days: int = Field(default=120, ge=1, description="Largest calendar window served at once")

    event_broker_enabled: bool = Field(default=False, description="Publish booking events to RabbitMQ")
    rabbitmq_host: str = Field(default="rabbitmq", description="RabbitMQ host for booking events")
    bookings_queue: str = Field(default="bookings", description="Durable queue receiving booking events")

    log_dir: str = Field(default="logs", description="Directory for per-service audit logs")

    users_service_port: int = 8001
    items_service_port: int = 8002
    bookings_service_port: int = 8003
    reviews_service_port: int = 8004
    messages_service_port: int = 8005


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
