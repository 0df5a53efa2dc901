from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from ai_resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    Decision,
)
from ai_resilience.logging import (
    Logger,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from ai_resilience.metrics import InvocationOutcome, MetricsCollector

T = TypeVar("T")

JITTER_FACTOR = 0.25

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """Retry attempt count and exponential backoff boundaries.

    Attributes:
        max_retries: Additional attempts allowed after the first one.
        initial_delay: Seconds to wait before the first retry.
        max_delay: Upper bound in seconds for the un-jittered delay.
        backoff_multiplier: Growth factor applied per retry.
        jitter: Spread each delay uniformly by +/- 25%.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def base_delay(self, retry_index: int) -> float:
        """Return the un-jittered delay before retry ``retry_index`` (0-based)."""
        try:
            grown = self.initial_delay * self.backoff_multiplier**retry_index
        except OverflowError:
            return self.max_delay
        return min(self.max_delay, grown)


class wait_capped_exponential_jitter(wait_base):
    """Capped exponential backoff with an optional symmetric jitter swing."""

    def __init__(self, config: RetryConfig, rng: random.Random | None = None) -> None:
        self.config = config
        self.rng = random.Random() if rng is None else rng

    def __call__(self, retry_state: RetryCallState) -> float:
        base = self.config.base_delay(retry_state.attempt_number - 1)
        if not self.config.jitter:
            return base
        swing = base * JITTER_FACTOR
        return max(0.0, base + self.rng.uniform(-swing, swing))


class stop_when_halted(stop_base):
    """Stop as soon as the invocation has been marked halted."""

    def __init__(self, record: InvocationRecord) -> None:
        self.record = record

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.record.halted


@dataclass
class InvocationRecord:
    """Bookkeeping for one ``execute`` call."""

    operation_id: str
    is_probe: bool
    started_at: float
    attempts_made: int = 0
    halted: bool = False
    last_error: Exception | None = None


def build_resilient_retrying(
    *,
    config: RetryConfig,
    record: InvocationRecord,
    sleep: Sleep,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    rng: random.Random | None = None,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` bounded by attempts and breaker halts."""
    return AsyncRetrying(
        retry=retry_if_exception_type(Exception),
        stop=stop_after_attempt(config.max_attempts) | stop_when_halted(record),
        wait=wait_capped_exponential_jitter(config, rng),
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=True,
    )


class RetryOrchestrator:
    """Drive attempts of one operation under breaker and metrics supervision.

    Every attempt outcome is reported to the breaker, so a long retry loop
    can trip it mid-flight; when that happens the loop ends at once with the
    upstream error. Sleeping happens outside both the breaker and metrics
    locks.
    """

    def __init__(
        self,
        breaker: CircuitBreaker,
        metrics: MetricsCollector,
        *,
        config: RetryConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        rng: random.Random | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.config = RetryConfig() if config is None else config
        self._breaker = breaker
        self._metrics = metrics
        self._clock = clock
        self._sleep = sleep
        self._rng = rng
        self._logger = get_logger(__name__) if logger is None else logger

    async def execute(self, operation: Callable[[], Awaitable[T]], operation_id: str) -> T:
        """Run ``operation`` with retries, failing fast while the circuit is open.

        Args:
            operation: Zero-argument coroutine factory to protect.
            operation_id: Opaque label attached to log events.

        Returns:
            The first successful result of ``operation``.

        Raises:
            CircuitOpenError: When the breaker denies the call.
            Exception: The last exception raised by ``operation`` once the
                invocation gives up.
        """
        decision = self._breaker.allow_request()
        if decision == Decision.DENY:
            raise self._rejection(operation_id)

        record = InvocationRecord(
            operation_id=operation_id,
            is_probe=decision == Decision.ALLOW_AS_PROBE,
            started_at=self._clock(),
        )
        try:
            result = await self._attempt_loop(operation, record)
        except Exception as exc:
            self._finish(record, InvocationOutcome.FAILURE, error=exc)
            raise
        except BaseException:
            if record.is_probe:
                self._breaker.abandon_probe()
            raise
        self._finish(record, InvocationOutcome.SUCCESS)
        return result

    def _rejection(self, operation_id: str) -> CircuitOpenError:
        snapshot = self._breaker.snapshot()
        self._metrics.record_attempt_failure()
        self._metrics.record_invocation(
            InvocationOutcome.FAILURE, attempts=0, latency=None
        )
        log_warning(
            self._logger,
            "request.rejected",
            operation_id=operation_id,
            breaker=snapshot.name,
            circuit_state=str(snapshot.state),
            failure_count=snapshot.failure_count,
        )
        return CircuitOpenError(self._breaker.name)

    async def _attempt_loop(
        self,
        operation: Callable[[], Awaitable[T]],
        record: InvocationRecord,
    ) -> T:
        retrying = build_resilient_retrying(
            config=self.config,
            record=record,
            sleep=self._sleep,
            before_sleep=lambda state: self._log_retry(record, state),
            rng=self._rng,
        )
        async for attempt in retrying:
            if record.last_error is not None:
                circuit_state = self._breaker.state()
                if circuit_state != CircuitState.CLOSED:
                    log_warning(
                        self._logger,
                        "request.retry_aborted",
                        operation_id=record.operation_id,
                        attempt=record.attempts_made + 1,
                        circuit_state=str(circuit_state),
                    )
                    raise record.last_error
            with attempt:
                record.attempts_made += 1
                try:
                    result = await operation()
                except Exception as exc:
                    self._on_attempt_failed(record, exc)
                    raise
                self._breaker.record_success(is_probe=record.is_probe)
                return result
        raise AssertionError("retry loop ended without an outcome")

    def _on_attempt_failed(self, record: InvocationRecord, exc: Exception) -> None:
        record.last_error = exc
        self._metrics.record_attempt_failure()
        opened = self._breaker.record_failure(is_probe=record.is_probe)
        if record.is_probe or opened:
            record.halted = True
        log_warning(
            self._logger,
            "request.attempt_failed",
            operation_id=record.operation_id,
            attempt=record.attempts_made,
            max_attempts=self.config.max_attempts,
            error=str(exc),
            circuit_state=str(self._breaker.state()),
            probe=record.is_probe,
        )

    def _log_retry(self, record: InvocationRecord, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        log_info(
            self._logger,
            "request.retrying",
            operation_id=record.operation_id,
            attempt=retry_state.attempt_number + 1,
            max_attempts=self.config.max_attempts,
            delay_ms=round(delay * 1000),
        )

    def _finish(
        self,
        record: InvocationRecord,
        outcome: InvocationOutcome,
        *,
        error: Exception | None = None,
    ) -> None:
        latency = max(self._clock() - record.started_at, 0.0)
        self._metrics.record_invocation(
            outcome,
            attempts=record.attempts_made,
            latency=latency,
        )
        if outcome == InvocationOutcome.SUCCESS:
            if record.attempts_made > 1:
                log_info(
                    self._logger,
                    "request.succeeded_after_retry",
                    operation_id=record.operation_id,
                    attempt=record.attempts_made,
                    latency_ms=round(latency * 1000),
                )
            return
        log_error(
            self._logger,
            "request.failed",
            operation_id=record.operation_id,
            total_attempts=record.attempts_made,
            circuit_state=str(self._breaker.state()),
            error=str(error),
        )
