"""
Configuration management for the convergence poller.

This module handles environment variables, settings validation, and the
default wait parameters using Pydantic Settings for type safety and validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import UnknownStatePolicy


class WaitDefaultsConfig(BaseModel):
    """Default wait parameters applied when a call site does not set them."""

    initial_delay_seconds: float = Field(
        default=0.0, description="Delay before the first probe in seconds"
    )
    poll_interval_seconds: float = Field(
        default=10.0, description="Minimum interval between probes in seconds"
    )
    max_poll_interval_seconds: float | None = Field(
        default=None, description="Maximum interval between probes in seconds"
    )
    backoff_factor: float = Field(
        default=2.0, description="Interval growth multiplier per attempt"
    )
    timeout_seconds: float = Field(
        default=1200.0, description="Overall session timeout in seconds (20 minutes)"
    )
    not_found_checks: int = Field(
        default=20, description="Consecutive absent snapshots tolerated"
    )
    unknown_state_policy: UnknownStatePolicy = Field(
        default=UnknownStatePolicy.PENDING,
        description="Handling of unknown status labels",
    )


class Settings(BaseSettings):
    """Main convergence poller settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format")

    # Wait defaults
    wait_initial_delay_seconds: float = Field(
        default=0.0, description="Default delay before the first probe"
    )
    wait_poll_interval_seconds: float = Field(
        default=10.0, description="Default minimum interval between probes"
    )
    wait_max_poll_interval_seconds: float | None = Field(
        default=None, description="Default maximum interval between probes"
    )
    wait_backoff_factor: float = Field(
        default=2.0, description="Default interval growth multiplier"
    )
    wait_timeout_seconds: float = Field(
        default=1200.0, description="Default overall session timeout"
    )
    wait_not_found_checks: int = Field(
        default=20, description="Default consecutive absent snapshots tolerated"
    )
    wait_unknown_state_policy: str = Field(
        default="pending",
        description="Unknown status handling: pending, warn, fail",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed_formats = {"json", "console"}
        if v.lower() not in allowed_formats:
            raise ValueError(f"Invalid log format: {v}")
        return v.lower()

    @field_validator("wait_poll_interval_seconds", "wait_timeout_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate strictly positive durations."""
        if v <= 0:
            raise ValueError(f"Duration must be positive, got {v}")
        return v

    @field_validator("wait_initial_delay_seconds")
    @classmethod
    def validate_initial_delay(cls, v: float) -> float:
        """Validate initial delay."""
        if v < 0:
            raise ValueError(f"Initial delay cannot be negative, got {v}")
        return v

    @field_validator("wait_backoff_factor")
    @classmethod
    def validate_backoff_factor(cls, v: float) -> float:
        """Validate backoff factor."""
        if v < 1:
            raise ValueError(f"Backoff factor must be at least 1, got {v}")
        return v

    @field_validator("wait_unknown_state_policy")
    @classmethod
    def validate_unknown_state_policy(cls, v: str) -> str:
        """Validate unknown state policy."""
        allowed_policies = {policy.value for policy in UnknownStatePolicy}
        if v.lower() not in allowed_policies:
            raise ValueError(f"Invalid unknown state policy: {v}")
        return v.lower()

    @property
    def wait_defaults(self) -> WaitDefaultsConfig:
        """Get default wait configuration."""
        return WaitDefaultsConfig(
            initial_delay_seconds=self.wait_initial_delay_seconds,
            poll_interval_seconds=self.wait_poll_interval_seconds,
            max_poll_interval_seconds=self.wait_max_poll_interval_seconds,
            backoff_factor=self.wait_backoff_factor,
            timeout_seconds=self.wait_timeout_seconds,
            not_found_checks=self.wait_not_found_checks,
            unknown_state_policy=UnknownStatePolicy(self.wait_unknown_state_policy),
        )


# Global settings instance - initialized lazily to avoid import-time errors
_settings_instance = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings_instance
    if _settings_instance is None:
        try:
            _settings_instance = Settings()
        except ValueError as e:
            raise ConfigurationError(
                "Invalid convergence poller configuration", {"error": str(e)}
            ) from e
    return _settings_instance


def __getattr__(name: str) -> Any:
    """Allow module-level access to settings attributes."""
    if name == "settings":
        return get_settings()
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
