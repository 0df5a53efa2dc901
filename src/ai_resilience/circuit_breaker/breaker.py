"""Core circuit breaker implementation."""

import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ai_resilience.circuit_breaker.metrics import BreakerListener
from ai_resilience.circuit_breaker.state import BreakerSnapshot, CircuitState, Decision
from ai_resilience.logging import Logger, get_logger, log_exception, log_info, log_warning

Clock = Callable[[], float]
_Transition = tuple[CircuitState, CircuitState]


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Failures inside the monitoring window required
            while ``CLOSED`` before opening.
        reset_timeout: Seconds to wait while ``OPEN`` before allowing a probe.
        monitoring_period: Seconds a failure stays in the sliding window.
    """

    failure_threshold: int = 5
    reset_timeout: float = 60.0
    monitoring_period: float = 60.0

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")
        if self.monitoring_period <= 0:
            raise ValueError("monitoring_period must be > 0")


class CircuitBreaker:
    """Three-state gate over a sliding window of failed attempts.

    All state lives behind one ``threading.Lock``. No method awaits or sleeps
    while holding it, so the breaker is safe to share between event-loop
    tasks and threads alike. The ``OPEN`` to ``HALF_OPEN`` transition is
    resolved lazily when callers ask, never by a timer.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        clock: Clock = time.monotonic,
        listeners: Sequence[BreakerListener] | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Build a circuit breaker with optional custom dependencies.

        Args:
            name: Breaker name used in logs and errors.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            clock: Monotonic clock returning seconds.
            listeners: Optional listener hooks for state transitions.
            logger: Structured logger. Defaults to a structlog logger.
        """
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._clock = clock
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger = get_logger(__name__) if logger is None else logger
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failures: deque[float] = deque()
        self._opened_at: float | None = None

    def _prune(self, now: float) -> None:
        cutoff = now - self.config.monitoring_period
        while self._failures and self._failures[0] <= cutoff:
            self._failures.popleft()

    def _reset_elapsed(self, now: float) -> bool:
        opened_at = now if self._opened_at is None else self._opened_at
        return now - opened_at >= self.config.reset_timeout

    def _resolved_state(self, now: float) -> CircuitState:
        if self._state == CircuitState.OPEN and self._reset_elapsed(now):
            return CircuitState.HALF_OPEN
        return self._state

    def _open(self, now: float) -> _Transition:
        old = self._state
        self._state = CircuitState.OPEN
        self._opened_at = now
        return old, CircuitState.OPEN

    def _emit_state_change(self, transition: _Transition, failure_count: int) -> None:
        old, new = transition
        log_info(
            self._logger,
            "circuit_breaker.state_changed",
            breaker=self.name,
            from_state=str(old),
            to_state=str(new),
            failure_count=failure_count,
        )
        for listener in self._listeners:
            try:
                listener.on_state_change(self.name, old, new)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    breaker=self.name,
                    listener=type(listener).__qualname__,
                )

    def allow_request(self) -> Decision:
        """Decide whether a call may run now.

        Returns:
            ``ALLOW`` while ``CLOSED``. ``ALLOW_AS_PROBE`` for exactly one
            caller once the reset timeout has elapsed. ``DENY`` otherwise,
            including while a probe is outstanding.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return Decision.ALLOW
            if self._state == CircuitState.HALF_OPEN:
                return Decision.DENY
            now = self._clock()
            if not self._reset_elapsed(now):
                return Decision.DENY
            self._state = CircuitState.HALF_OPEN
            failure_count = len(self._failures)

        self._emit_state_change(
            (CircuitState.OPEN, CircuitState.HALF_OPEN), failure_count
        )
        return Decision.ALLOW_AS_PROBE

    def record_success(self, *, is_probe: bool) -> None:
        """Record a successful attempt.

        A successful probe closes the circuit and clears the failure window.
        Other successes change nothing; earlier failures age out of the
        window on their own.
        """
        with self._lock:
            if not is_probe or self._state != CircuitState.HALF_OPEN:
                return
            self._state = CircuitState.CLOSED
            self._failures.clear()
            self._opened_at = None

        self._emit_state_change((CircuitState.HALF_OPEN, CircuitState.CLOSED), 0)

    def record_failure(self, *, is_probe: bool) -> bool:
        """Record a failed attempt.

        Returns:
            ``True`` when the circuit is open after this failure, meaning the
            caller must stop retrying.
        """
        transition: _Transition | None = None
        with self._lock:
            now = self._clock()
            self._failures.append(now)
            self._prune(now)
            failure_count = len(self._failures)
            if is_probe and self._state == CircuitState.HALF_OPEN:
                transition = self._open(now)
            elif self._state != CircuitState.CLOSED:
                return True
            elif failure_count >= self.config.failure_threshold:
                transition = self._open(now)

        if transition is None:
            return False
        self._emit_state_change(transition, failure_count)
        return True

    def abandon_probe(self) -> None:
        """Return an unfinished probe's ``HALF_OPEN`` slot to ``OPEN``.

        ``opened_at`` is kept, so the next caller may probe straight away.
        """
        with self._lock:
            if self._state != CircuitState.HALF_OPEN:
                return
            self._state = CircuitState.OPEN

        log_warning(self._logger, "circuit_breaker.probe_abandoned", breaker=self.name)

    def state(self) -> CircuitState:
        """Return the current state, resolving an elapsed reset timeout."""
        with self._lock:
            return self._resolved_state(self._clock())

    def snapshot(self) -> BreakerSnapshot:
        """Return a point-in-time view of breaker internals."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            return BreakerSnapshot(
                name=self.name,
                state=self._resolved_state(now),
                failure_count=len(self._failures),
                opened_at=self._opened_at,
            )

    def reset(self) -> None:
        """Force the breaker ``CLOSED`` and forget recorded failures."""
        with self._lock:
            previous = self._state
            self._state = CircuitState.CLOSED
            self._failures.clear()
            self._opened_at = None

        log_info(
            self._logger,
            "circuit_breaker.reset",
            breaker=self.name,
            from_state=str(previous),
        )
