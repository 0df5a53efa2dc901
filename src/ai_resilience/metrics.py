"""Rolling request metrics for the resilient client."""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass
from enum import StrEnum

from ai_resilience.circuit_breaker.state import CircuitState

LATENCY_CAPACITY = 1000


class InvocationOutcome(StrEnum):
    """Final outcome of one top-level invocation."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class MetricsView:
    """Immutable copy of collected counters and derived latency figures.

    Attributes:
        total_requests: Top-level invocations, including fail-fast rejections.
        successful_requests: Invocations whose final outcome was success.
        failed_requests: Failed attempts, plus one per fail-fast rejection.
        retried_requests: Invocations that made more than one attempt.
        circuit_opens: Transitions into ``OPEN``.
        circuit_closes: ``HALF_OPEN`` to ``CLOSED`` transitions.
        average_latency: Mean of buffered latencies in seconds, 0 if empty.
        p95_latency: Nearest-rank 95th percentile of buffered latencies.
        latencies: Buffered latency samples in seconds, oldest first.
    """

    total_requests: int
    successful_requests: int
    failed_requests: int
    retried_requests: int
    circuit_opens: int
    circuit_closes: int
    average_latency: float
    p95_latency: float
    latencies: tuple[float, ...]


def _p95(samples: tuple[float, ...]) -> float:
    if not samples:
        return 0.0
    ordered = sorted(samples)
    index = max(math.ceil(len(ordered) * 0.95) - 1, 0)
    return ordered[index]


class MetricsCollector:
    """Thread-safe counters plus a bounded FIFO of invocation latencies.

    Also satisfies ``BreakerListener`` so breaker transitions are counted
    without the breaker knowing about metrics.
    """

    def __init__(self, *, latency_capacity: int = LATENCY_CAPACITY) -> None:
        if latency_capacity < 1:
            raise ValueError("latency_capacity must be >= 1")
        self._lock = threading.Lock()
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._retried_requests = 0
        self._circuit_opens = 0
        self._circuit_closes = 0
        self._latencies: deque[float] = deque(maxlen=latency_capacity)

    def record_invocation(
        self,
        outcome: InvocationOutcome,
        *,
        attempts: int,
        latency: float | None,
    ) -> None:
        """Account for one finished top-level invocation.

        Args:
            outcome: Final outcome of the invocation.
            attempts: Operation calls made; 0 for fail-fast rejections.
            latency: Seconds from first attempt to settlement, ``None`` when
                the operation never ran.
        """
        with self._lock:
            self._total_requests += 1
            if outcome == InvocationOutcome.SUCCESS:
                self._successful_requests += 1
            if attempts > 1:
                self._retried_requests += 1
            if latency is not None:
                self._latencies.append(latency)

    def record_attempt_failure(self) -> None:
        with self._lock:
            self._failed_requests += 1

    def record_circuit_open(self) -> None:
        with self._lock:
            self._circuit_opens += 1

    def record_circuit_close(self) -> None:
        with self._lock:
            self._circuit_closes += 1

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Count breaker transitions reported by ``CircuitBreaker``."""
        if new == CircuitState.OPEN:
            self.record_circuit_open()
        elif new == CircuitState.CLOSED and old == CircuitState.HALF_OPEN:
            self.record_circuit_close()

    def snapshot(self) -> MetricsView:
        """Return an immutable copy of all counters and latency statistics."""
        with self._lock:
            latencies = tuple(self._latencies)
            view = MetricsView(
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                retried_requests=self._retried_requests,
                circuit_opens=self._circuit_opens,
                circuit_closes=self._circuit_closes,
                average_latency=sum(latencies) / len(latencies) if latencies else 0.0,
                p95_latency=_p95(latencies),
                latencies=latencies,
            )
        return view

    def format_stats(self, state: CircuitState, *, recent_failures: int = 0) -> str:
        """Render a human-readable multi-line summary."""
        view = self.snapshot()
        success_rate = (
            view.successful_requests / view.total_requests * 100
            if view.total_requests
            else 0.0
        )
        lines = [
            "Resilience Stats:",
            f"  State: {state}",
            f"  Total Requests: {view.total_requests}",
            f"  Successful: {view.successful_requests} ({success_rate:.2f}%)",
            f"  Failed: {view.failed_requests}",
            f"  Retried: {view.retried_requests}",
            f"  Circuit Opens: {view.circuit_opens}",
            f"  Circuit Closes: {view.circuit_closes}",
            f"  Avg Latency: {round(view.average_latency * 1000)}ms",
            f"  P95 Latency: {round(view.p95_latency * 1000)}ms",
            f"  Recent Failures: {recent_failures}",
        ]
        return "\n".join(lines)
