"""
Configuration settings for the Quotation Engine.

Uses pydantic-settings for environment variable management with validation.
Supports multi-environment deployments (development, staging, production).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection configuration."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    host: str = "localhost"
    port: int = 5432
    name: str = "quotation_engine"
    user: str = "postgres"
    password: SecretStr = SecretStr("postgres")
    pool_size: int = 20
    max_overflow: int = 10

    # Full SQLAlchemy URL, overrides the discrete fields (e.g. sqlite+aiosqlite)
    url: str | None = None

    @property
    def async_url(self) -> str:
        """Construct async database URL."""
        if self.url:
            return self.url
        return (
            f"postgresql+asyncpg://{self.user}:"
            f"{self.password.get_secret_value()}@"
            f"{self.host}:{self.port}/{self.name}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.async_url.startswith("sqlite")


class AuthSettings(BaseSettings):
    """
    Token verification configuration.

    Tokens are issued by the external auth service; the engine only
    verifies them and reads the acting user from the payload.
    """

    model_config = SettingsConfigDict(env_prefix="AUTH_")

    secret_key: SecretStr = SecretStr("your-super-secret-key-change-in-production")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30


class QuotationSettings(BaseSettings):
    """Quotation pricing specific settings."""

    model_config = SettingsConfigDict(env_prefix="QUOTATION_")

    number_prefix: str = "QT"
    currency: str = "INR"
    price_cache_ttl_seconds: int = 300
    price_cache_max_entries: int = 10_000


class WorkOrderSettings(BaseSettings):
    """Work order subsystem hand-off configuration."""

    model_config = SettingsConfigDict(env_prefix="WORK_ORDER_")

    base_url: str = "http://localhost:8001/api/v1"
    timeout_seconds: float = 15.0
    max_attempts: int = 3


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Body Builder Quotation Engine"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Sub-configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    quotation: QuotationSettings = Field(default_factory=QuotationSettings)
    work_orders: WorkOrderSettings = Field(default_factory=WorkOrderSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()


# Convenience export
settings = get_settings()
