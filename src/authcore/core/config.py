"""Configuration management for authcore.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded at application
startup and is immutable during runtime. Malformed token lifetimes, a bad
hash cost factor or missing secrets fail here, before any request is served.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from authcore.domain.exceptions import ConfigurationError
from authcore.infrastructure.auth.durations import parse_duration
from authcore.infrastructure.auth.jwt_service import TokenCodec
from authcore.infrastructure.auth.password_hasher import (
    DEFAULT_COST_FACTOR,
    validate_cost_factor,
)


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AUTHCORE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "authcore"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./authcore_data/authcore.db"
    db_echo: bool = False

    # Token Settings
    jwt_access_secret: str = Field(..., min_length=1, description="Secret for access tokens")
    jwt_refresh_secret: str = Field(..., min_length=1, description="Secret for refresh tokens")
    jwt_access_expires_in: str = "15m"
    jwt_refresh_expires_in: str = "7d"
    refresh_token_retention_days: int = Field(default=30, ge=0)

    # Password Hashing
    password_hash_cost: int = DEFAULT_COST_FACTOR

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("jwt_access_expires_in", "jwt_refresh_expires_in")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Validate token lifetimes against the duration grammar."""
        try:
            parse_duration(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("password_hash_cost")
    @classmethod
    def validate_password_hash_cost(cls, v: int) -> int:
        """Validate the password hash cost factor range."""
        try:
            return validate_cost_factor(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e

    @model_validator(mode="after")
    def validate_distinct_secrets(self) -> "Settings":
        """Access and refresh tokens must not share a signing secret."""
        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("Access and refresh secrets must differ")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    def token_codec(self) -> TokenCodec:
        """Build a token codec from the configured secrets and lifetimes."""
        return TokenCodec(
            access_secret=self.jwt_access_secret,
            refresh_secret=self.jwt_refresh_secret,
            access_ttl=self.jwt_access_expires_in,
            refresh_ttl=self.jwt_refresh_expires_in,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function caches the settings instance to avoid reloading
    configuration on every call. Settings are loaded once at startup.

    Returns:
        Settings: Cached application settings instance.

    Raises:
        ConfigurationError: If a setting is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
