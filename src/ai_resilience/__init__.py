"""Resilience layer for calls to an upstream AI completion service.

``ResilientClient`` composes a circuit breaker, an exponential-backoff retry
orchestrator and a rolling metrics collector into one awaitable call.
"""

from ai_resilience.circuit_breaker import (
    BreakerListener,
    BreakerSnapshot,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitOpenError,
    CircuitState,
    Decision,
)
from ai_resilience.client import ResilientClient
from ai_resilience.config import ResilienceConfig
from ai_resilience.metrics import InvocationOutcome, MetricsCollector, MetricsView
from ai_resilience.retry import InvocationRecord, RetryConfig, RetryOrchestrator
from ai_resilience.settings import ResilienceSettings

__all__ = [
    "BreakerListener",
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "Decision",
    "InvocationOutcome",
    "InvocationRecord",
    "MetricsCollector",
    "MetricsView",
    "ResilienceConfig",
    "ResilienceSettings",
    "ResilientClient",
    "RetryConfig",
    "RetryOrchestrator",
]
