from __future__ import annotations

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ai_resilience.circuit_breaker import CircuitBreakerConfig
from ai_resilience.config import ResilienceConfig
from ai_resilience.logging import get_log_level_value
from ai_resilience.retry import RetryConfig

ENV_PREFIX = "AI_RESILIENCE_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class ResilienceSettings(BaseSettings):
    """Environment-driven settings for one resilient upstream client."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    breaker_name: str = "ai-completion"
    failure_threshold: int = 5
    reset_timeout_seconds: float = 60.0
    monitoring_period_seconds: float = 60.0
    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True
    log_level: str = "INFO"

    @field_validator("breaker_name", mode="before")
    @classmethod
    def _validate_breaker_name(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError("breaker_name must be non-empty")
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            get_log_level_value(value)
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def _validate_resilience_settings(self) -> ResilienceSettings:
        self.to_config()
        return self

    def to_config(self) -> ResilienceConfig:
        """Build the immutable client configuration from these settings."""
        return ResilienceConfig(
            circuit_breaker=CircuitBreakerConfig(
                failure_threshold=self.failure_threshold,
                reset_timeout=self.reset_timeout_seconds,
                monitoring_period=self.monitoring_period_seconds,
            ),
            retry=RetryConfig(
                max_retries=self.max_retries,
                initial_delay=self.initial_delay_seconds,
                max_delay=self.max_delay_seconds,
                backoff_multiplier=self.backoff_multiplier,
                jitter=self.jitter,
            ),
        )
