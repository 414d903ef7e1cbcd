# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Configuration management using Pydantic Settings."""

from beartype import beartype
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with immutable configuration."""

    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        frozen=True,
        validate_default=True,
        extra="forbid",
    )

    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/brokerdesk",
        description="PostgreSQL connection URL",
        min_length=1,
    )
    database_pool_min: int = Field(
        default=2,
        ge=1,
        le=20,
        description="Minimum database pool size",
    )
    database_pool_max: int = Field(
        default=10,
        ge=2,
        le=100,
        description="Maximum database pool size",
    )
    database_pool_timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Connection acquisition timeout in seconds",
    )
    database_command_timeout: float = Field(
        default=30.0,
        ge=5.0,
        le=300.0,
        description="Query execution timeout in seconds",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
        min_length=1,
    )
    redis_ttl_seconds: int = Field(
        default=300,
        ge=10,
        le=86400,
        description="Default Redis TTL in seconds",
    )

    # API Configuration
    app_name: str = Field(
        default="BrokerDesk",
        description="Application name",
        min_length=1,
    )
    api_host: str = Field(
        default="0.0.0.0",  # nosec B104 - containerized deployment
        description="API host to bind to",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="API port to bind to",
    )
    api_env: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="API environment",
    )
    api_cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Allowed CORS origins",
    )

    # Security
    jwt_secret: str = Field(
        default="test-jwt-secret-for-testing-only-never-use-in-production-32-chars",
        min_length=32,
        description="Signing secret for user and portal tokens",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT algorithm",
    )

    # Client portal
    portal_base_url: str = Field(
        default="http://localhost:5173",
        description="Public base URL used to build portal and payment links",
        min_length=1,
    )
    portal_link_expiry_hours: int = Field(
        default=72,
        ge=1,
        le=24 * 30,
        description="Lifetime of client and claim portal links",
    )

    # Payments
    payment_currency: str = Field(
        default="NGN",
        pattern="^[A-Z]{3}$",
        description="ISO currency for auto-created payment transactions",
    )
    payment_default_method: str = Field(
        default="bank_transfer",
        pattern="^(bank_transfer|paystack|flutterwave)$",
        description="Payment method for auto-created payment transactions",
    )

    # External services
    email_service_url: str | None = Field(
        default=None,
        description="Endpoint of the email notification service",
    )
    email_service_token: str | None = Field(
        default=None,
        description="Bearer token for the email notification service",
    )
    inbox_check_url: str | None = Field(
        default=None,
        description="Endpoint that reports new insurer quote emails",
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout for outbound HTTP calls",
    )

    # Background work
    email_poll_interval_seconds: float = Field(
        default=600.0,
        ge=1.0,
        le=86400.0,
        description="Interval between insurer inbox polls",
    )
    idle_quote_threshold_days: int = Field(
        default=3,
        ge=1,
        le=90,
        description="Days a sent quote may wait for client selection",
    )
    no_insurer_match_threshold_days: int = Field(
        default=3,
        ge=1,
        le=90,
        description="Days an RFQ may wait for any insurer response",
    )

    @field_validator("database_pool_max")
    @classmethod
    def validate_pool_sizes(cls: type["Settings"], v: int, info: ValidationInfo) -> int:
        """Ensure pool max is greater than pool min."""
        if "database_pool_min" in info.data:
            min_size = info.data["database_pool_min"]
            if v < min_size:
                raise ValueError(
                    f"database_pool_max ({v}) must be >= database_pool_min ({min_size})"
                )
        return v

    @field_validator("api_cors_origins")
    @classmethod
    def validate_cors_origins(cls: type["Settings"], v: list[str]) -> list[str]:
        """Validate CORS origins are proper URLs."""
        for origin in v:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(f"Invalid CORS origin: {origin}")
        return v

    @field_validator("portal_base_url")
    @classmethod
    def validate_portal_base_url(cls: type["Settings"], v: str) -> str:
        """Portal links are emailed to clients, so the base must be absolute."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid portal base URL: {v}")
        return v.rstrip("/")

    @field_validator("jwt_secret")
    @classmethod
    def validate_jwt_secret(cls: type["Settings"], v: str, info: ValidationInfo) -> str:
        """Ensure test JWT secrets are not used in production."""
        if "api_env" in info.data and info.data["api_env"] == "production":
            if v.startswith("test-"):
                raise ValueError(
                    "Test JWT secret cannot be used in production. "
                    "Set JWT_SECRET environment variable."
                )
        return v

    @property
    @beartype
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.api_env == "production"

    @property
    @beartype
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.api_env == "development"


_settings: Settings | None = None


@beartype
def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


@beartype
def clear_settings_cache() -> None:
    """Clear settings cache (for testing)."""
    global _settings
    _settings = None
