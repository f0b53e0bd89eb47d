"""
Configuration management for the Redis session backend.

This module provides centralized configuration loading and validation using
Pydantic settings. Values are read from environment variables or .env files
and resolved once; the session store receives the resolved Settings object
in its constructor and never consults global state itself.
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


COOKIE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9!#$%&'*+.^_`|~-]+$")


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Session backend settings loaded from environment variables.

    Every field has a default, so an empty environment yields a working
    configuration pointing at a local Redis on 127.0.0.1:6379, database 0,
    with the "PHPSESSID:" key prefix and a 30 minute TTL.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Redis connection
    redis_host: str = Field(
        default="127.0.0.1",
        description="Redis server address"
    )
    redis_port: int = Field(
        default=6379,
        ge=1,
        le=65535,
        description="Redis server port"
    )
    redis_password: Optional[str] = Field(
        default=None,
        description="Credential sent with AUTH; unset means no authentication"
    )
    redis_database: int = Field(
        default=0,
        ge=0,
        description="Logical database index selected after connecting"
    )

    # Session keys and expiration
    session_key_prefix: str = Field(
        default="PHPSESSID:",
        description="Namespace prepended to every session id to form its Redis key"
    )
    session_ttl_seconds: int = Field(
        default=1800,
        ge=1,
        description="Seconds until Redis expires an untouched session record"
    )

    # Session cookie (host side)
    session_cookie_name: str = Field(
        default="PHPSESSID",
        description="Name of the cookie carrying the session id"
    )
    session_cookie_path: str = Field(default="/")
    session_cookie_domain: Optional[str] = Field(default=None)
    session_cookie_secure: bool = Field(default=False)
    session_gc_probability: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Chance per request that the host invokes gc()"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    otel_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry collector endpoint URL"
    )
    otel_service_name: str = Field(
        default="redis-session",
        description="Service name for OpenTelemetry traces"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("redis_host")
    @classmethod
    def validate_redis_host(cls, v: str) -> str:
        """Validate that redis_host is not empty."""
        if not v or not v.strip():
            raise ValueError("redis_host cannot be empty")
        return v.strip()

    @field_validator("redis_password")
    @classmethod
    def validate_redis_password(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank credential as no credential."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("session_cookie_name")
    @classmethod
    def validate_session_cookie_name(cls, v: str) -> str:
        """Cookie names must be a non-empty RFC 6265 token."""
        v = v.strip()
        if not COOKIE_NAME_PATTERN.match(v):
            raise ValueError("session_cookie_name must be a non-empty cookie token")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @model_validator(mode="after")
    def validate_cookie_security(self) -> "Settings":
        """Production deployments must only send the session cookie over HTTPS."""
        if self.environment == Environment.PRODUCTION and not self.session_cookie_secure:
            raise ValueError(
                "session_cookie_secure must be enabled in the production environment"
            )
        return self


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Create Settings for a specific environment.

    Detects the environment from the ENVIRONMENT variable (if not provided)
    and loads the matching environment-specific .env file on top of .env.

    Args:
        environment: Optional environment override.

    Returns:
        Settings: Validated settings for the environment.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()]
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Pydantic ValidationError exposes field-level errors
        if hasattr(e, "errors"):
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", [])) or "settings"
                error_type = error.get("type", "")
                error_msg = error.get("msg", str(error))

                if error_type == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings before the application starts serving sessions.

    Raises:
        ConfigurationError: If the configuration cannot work at runtime.
    """
    settings = settings or get_settings()

    validation_errors = {}

    if settings.session_cookie_domain is not None and not settings.session_cookie_domain.strip():
        validation_errors["session_cookie_domain"] = "session_cookie_domain cannot be blank"

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )

