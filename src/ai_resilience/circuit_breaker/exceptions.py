"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected because the circuit is open.
  - The upstream failing, which surfaces the upstream exception unchanged.
"""


class CircuitBreakerError(Exception):
    """Base exception for the circuit breaker package."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the breaker rejecting the call.
    """

    def __init__(self, breaker_name: str) -> None:
        """Initialize a circuit-open exception payload.

        Args:
            breaker_name: Breaker rejecting the call.
        """
        self.breaker_name = breaker_name
        super().__init__(
            f"Circuit breaker is OPEN - rejecting request: {breaker_name}"
        )
