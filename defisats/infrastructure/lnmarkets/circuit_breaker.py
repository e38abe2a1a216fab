"""
Circuit breaker for upstream HTTP calls.

CLOSED: calls flow. After ``failure_threshold`` consecutive failures the
breaker OPENs and refuses calls for ``recovery_timeout`` seconds. The next
call after that is let through (HALF_OPEN); success closes the breaker,
failure opens it again.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        name: str = "lnmarkets",
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self._clock = clock
        self._failures = 0
        self._opened_at: float | None = None
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state_unlocked()

    def _state_unlocked(self) -> CircuitState:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def allow_request(self) -> bool:
        with self._lock:
            return self._state_unlocked() is not CircuitState.OPEN

    def record_success(self) -> None:
        with self._lock:
            if self._opened_at is not None:
                logger.info("Circuit %s closed", self.name)
            self._failures = 0
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            half_open = self._state_unlocked() is CircuitState.HALF_OPEN
            if half_open or self._failures >= self.failure_threshold:
                self._opened_at = self._clock()
                logger.warning(
                    "Circuit %s opened after %d consecutive failures", self.name, self._failures
                )
