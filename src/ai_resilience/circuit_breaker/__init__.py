"""In-process circuit breaker guarding calls to an upstream dependency.

Key behavior notes:
  - Failures are counted in a sliding window of ``monitoring_period``
    seconds. A success while ``CLOSED`` does not clear the window; old
    failures simply age out.
  - ``OPEN`` becomes eligible for ``HALF_OPEN`` once ``reset_timeout`` has
    elapsed. The transition happens lazily on the next permission check.
  - Half-open probing is conservative: at most one in-flight probe per
    ``CircuitBreaker`` instance. Concurrent callers are denied until the
    probe settles.
"""

from ai_resilience.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from ai_resilience.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from ai_resilience.circuit_breaker.metrics import BreakerListener
from ai_resilience.circuit_breaker.state import BreakerSnapshot, CircuitState, Decision

__all__ = [
    "BreakerListener",
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "Decision",
]
