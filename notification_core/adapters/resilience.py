"""Call policies for flaky collaborators: retry, circuit breaker, bulkhead.

Composed as retry(circuit_breaker(bulkhead(call))). An open circuit or a
full bulkhead fails fast and is never retried.

States:
    - CLOSED: normal operation, calls pass through
    - OPEN: too many consecutive failures, calls fail immediately
    - HALF_OPEN: recovery timeout elapsed, a limited number of trial calls
      decide whether to close again or re-open
"""

from __future__ import annotations

import logging
import threading
import time
from enum import StrEnum
from typing import Any, Callable, TypeVar

from ..errors import BulkheadFullError, CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(StrEnum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    def __init__(
        self,
        *,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold <= 0:
            raise ValueError("failure_threshold must be greater than 0")
        if recovery_timeout <= 0:
            raise ValueError("recovery_timeout must be greater than 0")
        if half_open_max_calls <= 0:
            raise ValueError("half_open_max_calls must be greater than 0")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._half_open_calls = 0
        self._opened_at: float | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_half_open()
            return self._state

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            self._maybe_half_open()
            if self._state is CircuitState.OPEN:
                raise CircuitOpenError(f"Circuit breaker '{self.name}' is OPEN")
            if self._state is CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.half_open_max_calls:
                    raise CircuitOpenError(f"Circuit breaker '{self.name}' is HALF_OPEN")
                self._half_open_calls += 1

    def _on_success(self) -> None:
        with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info("[CIRCUIT CLOSED] name=%s", self.name)
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._half_open_calls = 0
            self._opened_at = None

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if (
                self._state is CircuitState.HALF_OPEN
                or self._failure_count >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                self._half_open_calls = 0
                logger.warning(
                    "[CIRCUIT OPEN] name=%s failures=%d", self.name, self._failure_count
                )

    def _maybe_half_open(self) -> None:
        if (
            self._state is CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
            logger.info("[CIRCUIT HALF_OPEN] name=%s", self.name)


class Bulkhead:
    """Caps concurrent calls; waits at most `max_wait` seconds for a slot."""

    def __init__(self, *, name: str, max_concurrent: int = 10, max_wait: float = 0.5) -> None:
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be greater than 0")
        self.name = name
        self.max_wait = max_wait
        self._semaphore = threading.BoundedSemaphore(max_concurrent)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if not self._semaphore.acquire(timeout=self.max_wait):
            raise BulkheadFullError(f"Bulkhead '{self.name}' is full")
        try:
            return func(*args, **kwargs)
        finally:
            self._semaphore.release()


class RetryPolicy:
    """Bounded attempts with exponential backoff between them."""

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
        multiplier: float = 2.0,
        max_backoff_seconds: float = 10.0,
        no_retry_on: tuple[type[Exception], ...] = (CircuitOpenError, BulkheadFullError),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be greater than 0")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.multiplier = multiplier
        self.max_backoff_seconds = max_backoff_seconds
        self.no_retry_on = no_retry_on
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt."""
        delay = self.backoff_seconds * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        attempt = 1
        while True:
            try:
                return func(*args, **kwargs)
            except self.no_retry_on:
                raise
            except Exception as exc:
                if attempt >= self.max_attempts:
                    logger.error(
                        "[RETRY EXHAUSTED] func=%s attempts=%d error=%s",
                        getattr(func, "__name__", func),
                        attempt,
                        exc,
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "[RETRY] func=%s attempt=%d/%d delay=%.2f error=%s",
                    getattr(func, "__name__", func),
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                self._sleep(delay)
                attempt += 1
