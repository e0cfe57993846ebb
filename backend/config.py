"""
Duplicate Account Cleanup - Configuration Management

Centralized configuration for the two store connections, logging and error
tracking. This module ensures:
- No hardcoded connection strings or secrets
- No missing connection descriptors (fatal before any store is touched)
- Environment-specific settings (dev/staging/prod)
"""

from functools import lru_cache
from typing import List, Optional, Tuple
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cleanup.errors import ConfigurationError
from database.connection import (
    IDENTITY_STORE,
    PROFILE_STORE,
    StoreDescriptor,
    normalize_async_url,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Cleanup settings loaded from environment variables and an optional .env file.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ==================== ENVIRONMENT ====================
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production"
    )

    # ==================== DATABASES ====================
    IDENTITY_DATABASE_URL: str = Field(
        default="",
        description="PostgreSQL URL of the identity (authentication) store (required)"
    )
    PROFILE_DATABASE_URL: str = Field(
        default="",
        description="PostgreSQL URL of the profile (application) store (required)"
    )
    DATABASE_SSL: str = Field(
        default="",
        description="asyncpg ssl mode for both stores, e.g. require (empty = driver default)"
    )
    DATABASE_ECHO: bool = Field(
        default=False,
        description="Echo every SQL statement to the log"
    )

    # ==================== OBSERVABILITY ====================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR"
    )
    LOG_JSON: bool = Field(
        default=False,
        description="Emit structured JSON logs instead of plain lines"
    )
    LOG_DIR: str = Field(
        default=".",
        description="Directory for the timestamped audit log file"
    )
    AUDIT_LOG_ENABLED: bool = Field(
        default=True,
        description="Write the audit trail to cleanup_log_<timestamp>.txt"
    )
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking"
    )

    # ==================== COMPUTED PROPERTIES ====================

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def validate_connection_config(self) -> List[str]:
        """
        Validate both connection descriptors.
        Returns list of validation errors.
        """
        errors = []

        for name, url in (
            ("IDENTITY_DATABASE_URL", self.IDENTITY_DATABASE_URL),
            ("PROFILE_DATABASE_URL", self.PROFILE_DATABASE_URL),
        ):
            if not url:
                errors.append(f"{name} is required")
            elif not normalize_async_url(url).startswith("postgresql+"):
                errors.append(f"{name} must be a PostgreSQL URL")

        if (
            self.IDENTITY_DATABASE_URL
            and self.IDENTITY_DATABASE_URL == self.PROFILE_DATABASE_URL
        ):
            errors.append("IDENTITY_DATABASE_URL and PROFILE_DATABASE_URL point to the same database")

        if self.is_production and "localhost" in (
            self.IDENTITY_DATABASE_URL + self.PROFILE_DATABASE_URL
        ).lower():
            errors.append("Database URLs cannot point to localhost in production")

        return errors

    def get_connection_descriptors(self) -> Tuple[StoreDescriptor, StoreDescriptor]:
        """
        Get the (identity, profile) store descriptors.

        Raises:
            ConfigurationError: If either descriptor is missing or invalid
        """
        errors = self.validate_connection_config()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ConfigurationError(f"Connection configuration invalid: {', '.join(errors)}")

        ssl: Optional[str] = self.DATABASE_SSL or None
        return (
            StoreDescriptor(
                name=IDENTITY_STORE,
                url=self.IDENTITY_DATABASE_URL,
                ssl=ssl,
                echo=self.DATABASE_ECHO,
            ),
            StoreDescriptor(
                name=PROFILE_STORE,
                url=self.PROFILE_DATABASE_URL,
                ssl=ssl,
                echo=self.DATABASE_ECHO,
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once and cached for the process lifetime.
    """
    settings = Settings()
    logger.debug(f"Environment: {settings.ENVIRONMENT}")
    return settings
