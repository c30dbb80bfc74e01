"""Application settings using Pydantic Settings.

Centralized configuration for the lead workflow service.

SECURITY: Production requires the following environment variables:
- JWT_SECRET: JWT signing key (min 32 chars)

Generate secrets with: python -c "import secrets; print(secrets.token_hex(32))"
"""

import sys
import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PRODUCTION_ENVIRONMENTS = ("production", "prod", "staging")


class AuthSettings(BaseSettings):
    """JWT configuration for bearer authentication."""

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    secret: Optional[str] = Field(
        default=None,
        description="JWT signing key - a development secret is generated if not set"
    )
    algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_hours: int = Field(
        default=8,
        ge=1,
        description="Access token lifetime in hours"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="LEADFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="Leadflow", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # API settings
    api_host: str = Field(default="127.0.0.1", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # CORS
    cors_origins: list = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # Lifecycle engine
    max_conflict_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts at a version-checked write before reporting a conflict"
    )
    post_claim_next_step: str = Field(
        default="create_order",
        description="Next-step signal returned to callers after a successful claim"
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    # Nested settings (loaded separately)
    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in PRODUCTION_ENVIRONMENTS

    def validate_production_security(self) -> List[str]:
        """
        Validate all security requirements for production.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.is_production:
            return errors

        jwt_secret = self.auth.secret
        if not jwt_secret:
            errors.append(
                "JWT_SECRET: Required in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        elif len(jwt_secret) < 32:
            errors.append("JWT_SECRET: Must be at least 32 characters")

        if self.debug:
            errors.append("LEADFLOW_DEBUG: Must be False in production")

        return errors


# =============================================================================
# STARTUP VALIDATION
# =============================================================================

class StartupSecurityError(Exception):
    """Raised when security validation fails at startup."""
    pass


def validate_startup_security(settings: Settings, exit_on_failure: bool = True) -> bool:
    """
    Validate security settings at application startup.

    In production, fails fast if critical security settings are missing.

    Args:
        settings: Application settings instance
        exit_on_failure: If True, exit the process on failure (default)

    Returns:
        True if validation passes

    Raises:
        StartupSecurityError: If validation fails and exit_on_failure is False
    """
    errors = settings.validate_production_security()

    if not errors:
        if settings.is_production:
            logger.info("Production security validation PASSED")
        return True

    error_msg = (
        "\n" + "=" * 60 + "\n"
        "CRITICAL SECURITY CONFIGURATION ERROR\n"
        "=" * 60 + "\n\n"
        "The following security settings are missing or invalid:\n\n"
    )
    for i, err in enumerate(errors, 1):
        error_msg += f"  {i}. {err}\n\n"

    logger.critical(error_msg)

    if exit_on_failure:
        print(error_msg, file=sys.stderr)
        sys.exit(1)
    else:
        raise StartupSecurityError(error_msg)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
