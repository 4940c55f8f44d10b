"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Request limits
    max_request_body_size: int = Field(
        default=5 * 1024 * 1024,
        description="Maximum request body size in bytes (delivery photos are the largest bodies)",
    )

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/storefront",
        description="SQLAlchemy async database URL",
    )
    database_pool_size: int = Field(default=20, description="Connection pool size (ignored by SQLite)")
    database_echo: bool = Field(default=False, description="Log every SQL statement")
    database_auto_create: bool = Field(default=False, description="Create missing tables at startup")

    # Auth
    jwt_signing_key_jwk: str = Field(default="", description="Signing key JWK (JSON string) for JWT verification")
    jwt_algorithm: str = Field(default="ES256", description="Algorithm tokens are signed with")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    stripe_publishable_key: str = Field(default="", description="Stripe publishable key (for frontend)")
    stripe_currency: str = Field(default="usd", description="Currency for payment intents")
    stripe_min_charge_cents: int = Field(default=50, description="Smallest amount Stripe will charge")

    # Cache
    cache_max_size: int = Field(default=1000, description="Maximum cached entries")
    cache_default_ttl: int = Field(default=3600, description="Default cache TTL in seconds")
    order_stats_cache_ttl: int = Field(default=300, description="TTL for cached order statistics")

    # Live events
    sse_heartbeat_seconds: float = Field(default=30.0, description="Seconds between SSE heartbeat comments")
    sse_queue_size: int = Field(default=100, description="Pending events buffered per live connection")

    # Rate limiting
    order_rate_limit_requests: int = Field(default=10, description="Orders a customer may place per window")
    order_rate_limit_window_seconds: int = Field(default=900, description="Order rate limit window in seconds")

    # Delivery photos
    delivery_photo_dir: str = Field(default="./delivery-photos", description="Directory delivery photos are written to")
    delivery_photo_url_prefix: str = Field(default="/delivery-photos", description="URL prefix for stored photos")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_stripe_test_mode(self) -> bool:
        """Check if using Stripe test keys."""
        return self.stripe_secret_key.startswith("sk_test_")

    @property
    def stripe_enabled(self) -> bool:
        """Check if payment intents can be created."""
        return bool(self.stripe_secret_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
