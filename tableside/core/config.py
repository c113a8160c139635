"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports three modes:
    - DEVELOPMENT: Uses the in-memory Order Service (no backend needed)
    - STAGING / PRODUCTION: Talks to the real ordering backend over HTTP

The ENV_MODE variable controls which Order Service implementation is handed
to the cart, tracking and staff flows, so the same session code runs against
a local sandbox or the live API.

Usage:
    from tableside.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # In-memory order service
    else:
        # HTTP order service

Version: 1.0.0
"""

import logging
import sys
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with the in-memory order service
        PRODUCTION: Live environment against the ordering backend
        STAGING: Pre-production backend
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    The API token should NEVER be committed to version control.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Order Service
        api_base_url: Base URL of the ordering backend (".../api")
        api_token: Bearer token for staff (owner) endpoints
        http_timeout_seconds: Per-request timeout

        # Cart pricing
        tax_rate: Tax applied to the cart subtotal (decimal)
        service_fee: Flat fee added to every cart
        currency: Currency code appended to displayed prices

        # Timers
        tracking_poll_seconds: Diner order tracking poll interval
        console_refresh_seconds: Staff console background refresh interval
        order_success_banner_seconds: Lifetime of the "order sent" banner
        order_error_banner_seconds: Lifetime of a submission error banner
        console_banner_seconds: Lifetime of staff console banners
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Tableside Ordering",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="Sandbox server host"
    )
    api_port: int = Field(
        default=8001,
        description="Sandbox server port"
    )

    # ==========================================================================
    # ORDER SERVICE
    # ==========================================================================

    api_base_url: str = Field(
        default="http://localhost:8001/api",
        description="Ordering backend base URL"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token for owner endpoints"
    )
    http_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="HTTP request timeout in seconds"
    )

    # ==========================================================================
    # CART PRICING
    # ==========================================================================

    tax_rate: Decimal = Field(
        default=Decimal("0.10"),
        ge=0,
        description="Tax rate as decimal (10%)"
    )
    service_fee: Decimal = Field(
        default=Decimal("1.99"),
        ge=0,
        description="Flat service fee per cart"
    )
    currency: str = Field(
        default="MAD",
        description="Display currency"
    )

    # ==========================================================================
    # TIMERS
    # ==========================================================================

    tracking_poll_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Diner tracking view poll interval"
    )
    console_refresh_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Staff console background refresh interval"
    )
    order_success_banner_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Order success banner lifetime"
    )
    order_error_banner_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Order error banner lifetime"
    )
    console_banner_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Staff console banner lifetime"
    )

    # ==========================================================================
    # IN-MEMORY ORDER SERVICE
    # ==========================================================================

    mock_failure_rate: float = Field(
        default=0.05,
        ge=0,
        le=1,
        description="Probability of a simulated network failure"
    )
    mock_min_latency: float = Field(
        default=0.05,
        ge=0,
        description="Minimum simulated latency in seconds"
    )
    mock_max_latency: float = Field(
        default=0.3,
        ge=0,
        description="Maximum simulated latency in seconds"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def is_staging(self) -> bool:
        """Check if running in staging mode."""
        return self.env_mode == EnvironmentMode.STAGING

    @property
    def use_real_services(self) -> bool:
        """Check if the HTTP order service should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.api_token:
                missing.append("API_TOKEN")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once per process; call
    ``get_settings.cache_clear()`` after changing the environment.

    Returns:
        Settings: Configured application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.tax_rate)
        0.10
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logging.getLogger("tableside")
