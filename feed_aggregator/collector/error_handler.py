"""Error taxonomy and consecutive-failure cooldown tracking for upstream clients."""

import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class FeedAggregatorError(Exception):
    """Base class for errors raised by the aggregation engine."""


class ConfigurationError(FeedAggregatorError, ValueError):
    """Missing or invalid configuration (e.g. credentials). Never retried."""


class UpstreamError(FeedAggregatorError):
    """Transient upstream failure: timeout, 5xx, or network error."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimitedError(UpstreamError):
    """Upstream answered 429 Too Many Requests."""

    def __init__(self, message: str = "Rate limited (429)"):
        super().__init__(message, status=429)


class DataShapeError(FeedAggregatorError):
    """Upstream response did not have the expected shape."""


class DuplicateInteractionError(FeedAggregatorError):
    """A like or bookmark already exists for this (video, identity) pair."""


class VideoNotFoundError(FeedAggregatorError, LookupError):
    """No stored video has the requested ID."""


class ConsecutiveErrorTracker:
    """
    Tracker for consecutive errors with a self-imposed cooldown.

    Once ``threshold`` consecutive failures are recorded the tracker enters a
    cooldown window of ``cooldown_sec`` seconds. A single success resets the
    failure count.
    """

    def __init__(
        self,
        threshold: int,
        cooldown_sec: float = 0.0,
        source: str = "reddit",
        prometheus_exporter=None,
    ):
        """
        Initialize the error tracker.

        Args:
            threshold: Consecutive errors that trigger the cooldown
            cooldown_sec: Length of the cooldown window in seconds
            source: Upstream name used in logs and metrics
            prometheus_exporter: Optional Prometheus exporter for metrics
        """
        self.threshold = threshold
        self.cooldown_sec = cooldown_sec
        self.source = source
        self.consecutive_errors = 0
        self.cooldown_until = 0.0
        self.prometheus_exporter = prometheus_exporter

    def record_error(self, error_type: str = "transient") -> None:
        """Record an error occurrence and start the cooldown at the threshold."""
        self.consecutive_errors += 1
        logger.warning(
            f"{self.source}: consecutive errors {self.consecutive_errors}/{self.threshold} ({error_type})"
        )

        if self.prometheus_exporter:
            self.prometheus_exporter.record_api_error(self.source, error_type)
            self.prometheus_exporter.set_consecutive_errors(self.source, self.consecutive_errors)

        if self.should_abort():
            self.cooldown_until = time.time() + self.cooldown_sec
            logger.warning(
                f"{self.source}: entering cooldown for {self.cooldown_sec / 60:.0f}m "
                f"after {self.consecutive_errors} consecutive errors"
            )
            if self.prometheus_exporter:
                self.prometheus_exporter.set_cooldown_active(self.source, True)

    def record_success(self) -> None:
        """Record a successful request, resetting the consecutive error count."""
        if self.consecutive_errors > 0:
            logger.info(f"{self.source}: resetting consecutive error counter (was {self.consecutive_errors})")
            self.consecutive_errors = 0
            if self.prometheus_exporter:
                self.prometheus_exporter.set_consecutive_errors(self.source, 0)

    def should_abort(self) -> bool:
        """
        Check whether the failure threshold has been reached.

        Returns:
            True if the consecutive error count is at or above the threshold
        """
        return self.consecutive_errors >= self.threshold

    def in_cooldown(self) -> bool:
        active = time.time() < self.cooldown_until
        if not active and self.prometheus_exporter and self.cooldown_until:
            self.prometheus_exporter.set_cooldown_active(self.source, False)
        return active

    def cooldown_remaining(self) -> float:
        return max(0.0, self.cooldown_until - time.time())
