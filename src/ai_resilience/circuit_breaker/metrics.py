"""Observability hooks for circuit breakers."""

from typing import Protocol

from ai_resilience.circuit_breaker.state import CircuitState


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker transitions.

    Notes:
        Listeners are called after the breaker lock is released, so the
        order of notifications across concurrent callers is not guaranteed.
        A manual ``reset()`` is not reported to listeners.
    """

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Handle circuit state transitions."""
