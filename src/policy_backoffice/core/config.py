# PolicyCore - Policy Decision Management System
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
        env_file=None,  # Environment only, no .env files
        env_file_encoding="utf-8",
        frozen=True,
        validate_default=True,
        extra="forbid",
    )

    # Database
    database_url: str = Field(
        default="postgresql://localhost:5432/backoffice",
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
        ge=1,
        le=100,
        description="Maximum database pool size",
    )
    database_command_timeout: float = Field(
        default=30.0,
        ge=1.0,
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
        default=3600,
        ge=60,
        le=86400,
        description="Default Redis TTL in seconds",
    )

    # Rating
    rating_cache_enabled: bool = Field(
        default=True,
        description="Memoize rating table lookups in Redis",
    )
    rating_cache_ttl_seconds: int = Field(
        default=900,
        ge=1,
        le=86400,
        description="TTL for memoized rating table lookups",
    )

    # Policies
    policy_number_max_attempts: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum candidates tried when allocating a policy number",
    )
    policy_number_suffix_length: int = Field(
        default=8,
        ge=4,
        le=32,
        description="Length of the random policy number suffix",
    )
    expiring_window_max_days: int = Field(
        default=366,
        ge=1,
        le=3660,
        description="Largest look-ahead accepted for expiring policy queries",
    )

    # API Configuration
    app_name: str = Field(
        default="Policy Back-Office",
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
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins",
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Root log level",
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
