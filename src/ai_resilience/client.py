"""Resilient façade guarding calls to an upstream AI completion service."""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from ai_resilience.circuit_breaker import BreakerListener, CircuitBreaker, CircuitState
from ai_resilience.config import ResilienceConfig
from ai_resilience.logging import Logger, get_logger
from ai_resilience.metrics import MetricsCollector, MetricsView
from ai_resilience.retry import RetryOrchestrator, Sleep
from ai_resilience.settings import ResilienceSettings

T = TypeVar("T")

DEFAULT_BREAKER_NAME = "ai-completion"


class ResilientClient:
    """Circuit breaker + retry + metrics composed behind one call.

    One instance owns one breaker and one metrics collector. Instances are
    fully independent; share one instance across all calls to the same
    upstream dependency.
    """

    def __init__(
        self,
        config: ResilienceConfig | None = None,
        *,
        name: str = DEFAULT_BREAKER_NAME,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Wire breaker, metrics and retry orchestrator together.

        Args:
            config: Breaker and retry configuration. Defaults to
                ``ResilienceConfig()``.
            name: Breaker name used in logs and ``CircuitOpenError``.
            clock: Monotonic clock in seconds, shared by all components.
            sleep: Async sleep used between retry attempts.
            rng: Random source for backoff jitter.
            listeners: Extra breaker listeners notified after metrics.
            logger: Structured logger. Defaults to a structlog logger.
        """
        self.config = ResilienceConfig() if config is None else config
        self._logger = get_logger(__name__) if logger is None else logger
        self._metrics = MetricsCollector()
        self._breaker = CircuitBreaker(
            name,
            config=self.config.circuit_breaker,
            clock=clock,
            listeners=(self._metrics, *(listeners or ())),
            logger=self._logger,
        )
        self._orchestrator = RetryOrchestrator(
            self._breaker,
            self._metrics,
            config=self.config.retry,
            clock=clock,
            sleep=sleep,
            rng=rng,
            logger=self._logger,
        )

    @classmethod
    def from_settings(
        cls,
        settings: ResilienceSettings | None = None,
        *,
        listeners: Sequence[BreakerListener] | None = None,
        logger: Logger | None = None,
    ) -> ResilientClient:
        """Build a client from environment-driven settings."""
        resolved = ResilienceSettings() if settings is None else settings
        return cls(
            resolved.to_config(),
            name=resolved.breaker_name,
            listeners=listeners,
            logger=logger,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def execute_with_resilience(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_id: str,
    ) -> T:
        """Run ``operation`` under circuit breaker and retry protection.

        Raises:
            CircuitOpenError: When the circuit is open and the call is rejected.
            Exception: The last exception from ``operation`` when the
                invocation gives up.
        """
        return await self._orchestrator.execute(operation, operation_id)

    def get_circuit_state(self) -> CircuitState:
        return self._breaker.state()

    def get_metrics(self) -> MetricsView:
        return self._metrics.snapshot()

    def reset_circuit(self) -> None:
        """Force the circuit ``CLOSED``. Metrics counters are left untouched."""
        self._breaker.reset()

    def get_stats(self) -> str:
        snapshot = self._breaker.snapshot()
        return self._metrics.format_stats(
            snapshot.state,
            recent_failures=snapshot.failure_count,
        )
