"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Redis (for Dramatiq)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/payouts.log"

    # Withdrawals (amounts in kopecks)
    minimum_withdrawal: int = Field(
        default=100_000,
        gt=0,
        description="Minimum gross withdrawal amount in kopecks (1000 RUB)",
    )
    rejection_reason_min_length: int = Field(
        default=10,
        ge=1,
        description="Minimum length of a withdrawal rejection reason",
    )
    withdrawal_require_processing: bool = Field(
        default=False,
        description="Require PROCESSING before a withdrawal can be completed",
    )

    # Bonuses
    bonus_default_expiry_days: int = Field(
        default=365,
        gt=0,
        description="Days until an earned bonus expires",
    )
    bonus_minimum_withdrawal: int = Field(
        default=100_000,
        gt=0,
        description="Minimum bonus amount converted to currency in one request",
    )
    bonus_currency_rate: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Kopecks of currency paid per bonus kopeck",
    )
    referral_bonus_rate: Decimal = Field(
        default=Decimal("0.05"),
        ge=0,
        le=1,
        description="Share of a first purchase credited to the referrer",
    )

    # Concurrency control for balance check-and-reserve
    concurrency_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for an operation that hit a lock or version conflict",
    )
    concurrency_retry_base_delay: float = Field(
        default=0.2,
        ge=0,
        description="Base backoff delay in seconds (doubled per attempt)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL."""
        if not v.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql+asyncpg:// "
                "or sqlite+aiosqlite://"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            # DEBUG must be False in production
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )

            # SQLite has no row locks, balance reservation is not safe there
            if self.database_url.startswith("sqlite"):
                raise ValueError(
                    "SQLite is not supported in production. "
                    "Use postgresql+asyncpg:// for DATABASE_URL."
                )

        if self.database_echo and self.environment == "production":
            logger.warning("DATABASE_ECHO is enabled in production, SQL will be logged")

        return self


# Global settings instance
settings = Settings()
