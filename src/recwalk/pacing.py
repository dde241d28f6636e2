"""
Adaptive pacing between traversal attempts.

Slows the crawl down when attempts keep failing and speeds it back up
once attempts succeed again, so a struggling site is not hammered with
navigations.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Optional

logger = logging.getLogger(__name__)


@dataclass
class PacingConfig:
    """Configuration for the pacer."""
    # Base delay between attempts (seconds)
    base_delay: float = 1.0

    # Minimum delay (even under ideal conditions)
    min_delay: float = 0.5

    # Maximum delay (after repeated failures)
    max_delay: float = 10.0

    # Failure rate above which we back off
    failure_rate_threshold: float = 0.3

    # Window size for the moving failure rate
    window_size: int = 10

    # Backoff multiplier when failures pile up
    backoff_multiplier: float = 2.0

    # Recovery multiplier when attempts succeed
    recovery_multiplier: float = 0.9


@dataclass
class PacingMetrics:
    """Snapshot of the pacer state."""
    current_delay: float
    failure_rate: float
    attempts_in_window: int
    failures_in_window: int
    last_attempt_time: Optional[datetime]
    total_attempts: int
    total_failures: int
    total_wait_time: float


@dataclass
class AttemptRecord:
    """Record of a single attempt for metrics calculation."""
    timestamp: datetime
    duration: float  # seconds
    success: bool


class AdaptivePacer:
    """
    Paces traversal attempts and backs off on failures.

    Features:
    - Minimum spacing between attempts
    - Multiplicative backoff on a high failure rate
    - Gradual recovery on success
    """

    def __init__(self, config: Optional[PacingConfig] = None):
        """
        Initialize pacer.

        Args:
            config: Pacing configuration
        """
        self.config = config or PacingConfig()

        self._current_delay = self.config.base_delay
        self._last_attempt_time: Optional[float] = None
        self._history: Deque[AttemptRecord] = deque(maxlen=self.config.window_size)
        self._lock = asyncio.Lock()

        self._total_attempts = 0
        self._total_failures = 0
        self._total_wait_time = 0.0

    async def wait(self) -> float:
        """
        Wait until the next attempt may start.

        Returns:
            Actual time waited (seconds)
        """
        async with self._lock:
            now = time.time()

            if self._last_attempt_time is not None:
                elapsed = now - self._last_attempt_time
                wait_time = max(0, self._current_delay - elapsed)
            else:
                wait_time = 0

            if wait_time > 0:
                await asyncio.sleep(wait_time)
                self._total_wait_time += wait_time

            self._last_attempt_time = time.time()
            return wait_time

    def record_attempt(self, duration: float, success: bool = True) -> None:
        """
        Record a finished attempt.

        Args:
            duration: Time the attempt took (seconds)
            success: Whether the attempt completed its transition
        """
        self._history.append(AttemptRecord(
            timestamp=datetime.now(),
            duration=duration,
            success=success,
        ))
        self._total_attempts += 1
        if not success:
            self._total_failures += 1

        self._adjust_delay()

    def _adjust_delay(self) -> None:
        failure_rate = self.failure_rate
        new_delay = self._current_delay

        if failure_rate > self.config.failure_rate_threshold:
            new_delay *= self.config.backoff_multiplier
            logger.debug(
                f"Pacer: failures high ({failure_rate:.2%}), backing off to {new_delay:.2f}s"
            )
        elif failure_rate == 0:
            new_delay *= self.config.recovery_multiplier
            logger.debug(f"Pacer: attempts succeeding, recovering to {new_delay:.2f}s")

        self._current_delay = max(
            self.config.min_delay,
            min(self.config.max_delay, new_delay)
        )

    def get_metrics(self) -> PacingMetrics:
        """Current pacer metrics."""
        recent = list(self._history)
        failures = sum(1 for r in recent if not r.success)

        return PacingMetrics(
            current_delay=self._current_delay,
            failure_rate=failures / len(recent) if recent else 0.0,
            attempts_in_window=len(recent),
            failures_in_window=failures,
            last_attempt_time=datetime.fromtimestamp(self._last_attempt_time)
                if self._last_attempt_time else None,
            total_attempts=self._total_attempts,
            total_failures=self._total_failures,
            total_wait_time=self._total_wait_time,
        )

    def reset(self) -> None:
        """Reset pacer to initial state."""
        self._current_delay = self.config.base_delay
        self._last_attempt_time = None
        self._history.clear()
        self._total_attempts = 0
        self._total_failures = 0
        self._total_wait_time = 0.0

    @property
    def current_delay(self) -> float:
        """Current delay between attempts."""
        return self._current_delay

    @property
    def failure_rate(self) -> float:
        """Failure rate over the recent window."""
        if not self._history:
            return 0.0
        failures = sum(1 for r in self._history if not r.success)
        return failures / len(self._history)
