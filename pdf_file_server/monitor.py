import time
from collections import deque
from typing import Callable, Optional

from pdf_file_server.logger_config import setup_logger

logger = setup_logger()


class Monitor:
    """Counts storage outcomes and alerts operators when internal failures pile up.

    Only failures newer than ``window_seconds`` count towards the threshold.
    The alert fires once when the in-window count reaches the threshold and
    can fire again only after the window has drained below it.
    """

    def __init__(
        self,
        failure_threshold: int,
        window_seconds: float = 60,
        alert_handler: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Internal failures within the window that raise an alert
            window_seconds: Length of the sliding window
            alert_handler: Receives the alert text. Defaults to a CRITICAL log record
            clock: Seconds source; monotonic so wall-clock jumps do not move the window
        """
        if failure_threshold <= 0:
            raise ValueError("Failure threshold must be positive")
        if window_seconds <= 0:
            raise ValueError("Window seconds must be positive")

        self.failure_threshold = failure_threshold
        self.window_seconds = window_seconds
        self._alert = alert_handler or logger.critical
        self._clock = clock
        self._recent_failures = deque()
        self.passes = 0
        self.failures = 0

    def _drain(self, now: float) -> None:
        while self._recent_failures and now - self._recent_failures[0] >= self.window_seconds:
            self._recent_failures.popleft()

    def pass_(self) -> None:
        """Record a successful store or retrieve."""
        self.passes += 1

    def fail(self) -> None:
        """Record an internal storage failure."""
        now = self._clock()
        self._drain(now)
        self._recent_failures.append(now)
        self.failures += 1

        if len(self._recent_failures) == self.failure_threshold:
            self._alert(
                f"{self.failure_threshold} storage failures detected within {self.window_seconds}s "
                f"(total passes: {self.passes}, total failures: {self.failures})"
            )

    @property
    def failures_in_window(self) -> int:
        self._drain(self._clock())
        return len(self._recent_failures)

    @property
    def stats(self) -> dict:
        return {
            'total_passes': self.passes,
            'total_failures': self.failures,
            'failures_in_window': self.failures_in_window,
            'window_seconds': self.window_seconds,
        }
