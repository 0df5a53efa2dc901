"""Circuit breaker state primitives."""

from dataclasses import dataclass
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class Decision(StrEnum):
    """Outcome of asking the breaker whether a call may proceed."""

    ALLOW = "allow"
    ALLOW_AS_PROBE = "allow_as_probe"
    DENY = "deny"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: Breaker state, with an elapsed reset timeout reported as
            ``HALF_OPEN``.
        failure_count: Failures currently inside the monitoring window.
        opened_at: Clock reading when the breaker entered ``OPEN``, if open.
    """

    name: str
    state: CircuitState
    failure_count: int
    opened_at: float | None
