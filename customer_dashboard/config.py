"""
Configuration module for the customer dashboard.

This module provides centralized configuration management using Pydantic settings.
All configuration values can be overridden via environment variables or .env file.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings for the customer dashboard.

    All settings can be configured via environment variables.
    Settings are validated on instantiation to ensure correct configuration.

    Attributes:
        API_BASE_URL: Base URL of the customer backend REST API
        APP_NAME: Display name for the application
        DEBUG: Enable debug mode (shows API docs, human-readable logs)
        HOST: Server bind address
        PORT: Server port number
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        REQUEST_TIMEOUT: Timeout for backend HTTP requests in seconds
        DEFAULT_PAGE_SIZE: Page size used for new and reset customer queries
        ACCESS_TOKEN_KEY: Storage key (and cookie name) of the persisted token
        SESSION_COOKIE_NAME: Cookie holding the opaque browser session id
        COOKIE_SECURE: Mark cookies as Secure (HTTPS only)
        SESSION_IDLE_TIMEOUT: Seconds of inactivity before a browser state is dropped
        ENABLE_TRACING: Enable OpenTelemetry tracing
        OTLP_ENDPOINT: OTLP collector endpoint for traces
    """

    API_BASE_URL: str = Field(
        default="http://localhost:3000",
        description="Base URL of the customer backend REST API",
    )

    APP_NAME: str = Field(
        default="Customer Dashboard",
        description="Display name for the application",
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    HOST: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    PORT: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Server port number",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    REQUEST_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        le=30.0,
        description="Timeout for backend HTTP requests in seconds",
    )

    DEFAULT_PAGE_SIZE: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Page size for new and reset customer queries",
    )

    # Session and cookie configuration
    ACCESS_TOKEN_KEY: str = Field(
        default="access_token",
        description="Storage key and cookie name of the persisted bearer token",
    )
    SESSION_COOKIE_NAME: str = Field(
        default="dashboard_sid",
        description="Cookie holding the opaque browser session id",
    )
    COOKIE_SECURE: bool = Field(
        default=False,
        description="Only send cookies over HTTPS",
    )
    SESSION_IDLE_TIMEOUT: int = Field(
        default=3600,
        gt=0,
        description="Seconds of inactivity before a browser state is discarded",
    )

    # Tracing configuration
    ENABLE_TRACING: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    OTLP_ENDPOINT: Optional[str] = Field(
        default=None,
        description="OTLP gRPC endpoint for exported spans",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_url(cls, value: str) -> str:
        """
        Validate that the backend URL is properly formatted.

        Args:
            value: The URL to validate

        Returns:
            The validated URL without trailing slash

        Raises:
            ValueError: If URL is invalid
        """
        if not value:
            raise ValueError("API base URL cannot be empty")

        value = value.rstrip("/")

        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError(
                f"API base URL must start with http:// or https://, got: {value}"
            )

        return value


# Global settings instance
settings = Settings()
