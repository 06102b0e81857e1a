"""
Circuit breaker guarding the upstream release API.

While the breaker is open, release lookups fail fast and callers serve the
fallback URL instead of waiting on an API that keeps failing.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Optional

log = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"  # one trial call decides


class CircuitBreakerError(Exception):
    """The guarded upstream is skipped until the breaker's cool-down ends."""


class CircuitBreaker:
    """
    Async context manager counting consecutive failures of the calls it wraps.

    After `failure_threshold` failures the breaker opens for `recovery_timeout`
    seconds. The next call after that is a trial: `success_threshold` successes
    close the breaker, a failure reopens it.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self._clock = clock
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._trial_successes = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def retry_after(self) -> float:
        """Seconds until an open breaker allows a trial call."""
        if self._state is not CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self._opened_at + self.recovery_timeout - self._clock())

    def _move_to(self, state: CircuitState, message: str, level: int) -> None:
        log.log(level, f"Circuit breaker '{self.name}' {message}")
        self._state = state
        self._trial_successes = 0
        if state is CircuitState.OPEN:
            self._opened_at = self._clock()
        elif state is CircuitState.CLOSED:
            self._failures = 0

    async def __aenter__(self):
        async with self._lock:
            if self._state is CircuitState.OPEN:
                wait = self.retry_after()
                if wait > 0:
                    raise CircuitBreakerError(
                        f"'{self.name}' is unavailable, retrying in {wait:.0f}s"
                    )
                self._move_to(
                    CircuitState.HALF_OPEN,
                    "[yellow]half-open, trying one call[/yellow]",
                    logging.INFO,
                )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        async with self._lock:
            if exc_type is None:
                self._record_success()
            else:
                self._record_failure()
        return False

    def _record_success(self) -> None:
        self._failures = 0
        if self._state is not CircuitState.HALF_OPEN:
            return
        self._trial_successes += 1
        if self._trial_successes >= self.success_threshold:
            self._move_to(
                CircuitState.CLOSED, "[green]✓ recovered, closed[/green]", logging.INFO
            )

    def _record_failure(self) -> None:
        self._failures += 1
        if self._state is CircuitState.HALF_OPEN:
            self._move_to(
                CircuitState.OPEN,
                "[yellow]trial call failed, open again[/yellow]",
                logging.WARNING,
            )
        elif self._failures >= self.failure_threshold:
            self._move_to(
                CircuitState.OPEN,
                f"[red]✗ opened after {self._failures} consecutive failures, "
                f"skipping for {self.recovery_timeout}s[/red]",
                logging.ERROR,
            )
