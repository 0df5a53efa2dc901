"""Aggregate configuration for ``ResilientClient``."""

from dataclasses import dataclass, field

from ai_resilience.circuit_breaker import CircuitBreakerConfig
from ai_resilience.retry import RetryConfig


@dataclass(frozen=True)
class ResilienceConfig:
    """Breaker and retry configuration, immutable after construction."""

    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
