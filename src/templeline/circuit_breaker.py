"""Circuit breaker shared by the outbound clients.

The model, speech and booking clients each hold one, so a backend that keeps
failing is skipped for a cooldown period instead of stalling every call.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreaker:
    """closed -> open (after N consecutive failures) -> half-open (after cooldown)."""

    failure_threshold: int = 3
    cooldown_seconds: float = 60.0
    label: str = "service"

    _consecutive_failures: int = field(default=0, init=False, repr=False)
    _opened_at: Optional[float] = field(default=None, init=False, repr=False)

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        if time.monotonic() - self._opened_at >= self.cooldown_seconds:
            return "half_open"
        return "open"

    def should_try(self) -> bool:
        return self.state != "open"

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker CLOSED for %s", self.label)
        self._consecutive_failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures < self.failure_threshold:
            return
        # A failed half-open probe restarts the cooldown
        self._opened_at = time.monotonic()
        logger.warning(
            "Circuit breaker OPENED for %s after %d consecutive failures, "
            "skipping for %.0fs",
            self.label,
            self._consecutive_failures,
            self.cooldown_seconds,
        )
