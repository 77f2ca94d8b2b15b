"""Prometheus metrics for monitoring the feed aggregator."""

import logging
import time
from typing import Any, Dict, Optional

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Define metrics
UPSTREAM_REQUESTS = Counter(
    "feed_aggregator_upstream_requests_total",
    "Number of requests sent to upstream APIs",
    ["source"],
)

CACHE_HITS = Counter(
    "feed_aggregator_cache_hits_total",
    "Number of upstream calls answered from the response cache",
    ["source"],
)

API_ERRORS = Counter(
    "feed_aggregator_api_errors_total",
    "Number of API errors encountered",
    ["source", "error_type"],
)

CONSECUTIVE_ERRORS = Gauge(
    "feed_aggregator_consecutive_errors",
    "Number of consecutive upstream errors",
    ["source"],
)

COOLDOWN_ACTIVE = Gauge(
    "feed_aggregator_cooldown_active",
    "1 while the upstream is in its self-imposed cooldown",
    ["source"],
)

VIDEOS_ADDED = Counter(
    "feed_aggregator_videos_added_total",
    "Number of videos persisted by the scraper",
    ["source"],
)

KNOWN_VIDEOS = Gauge(
    "feed_aggregator_known_videos",
    "Number of videos in the store",
)

FEED_SIZE = Gauge(
    "feed_aggregator_feed_size",
    "Number of videos in the visible feed",
)

LATEST_SCRAPE_AGE = Gauge(
    "feed_aggregator_latest_scrape_age_seconds",
    "Seconds since the last scrape run started",
)

REQUEST_DURATION = Histogram(
    "feed_aggregator_request_duration_seconds",
    "Duration of upstream API requests in seconds",
    ["source"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0],
)


class PrometheusExporter:
    """Prometheus metrics exporter for the feed aggregator."""

    def __init__(self, port: int = 8000):
        """
        Initialize the Prometheus exporter.

        Args:
            port: Port to expose metrics on
        """
        self.port = port
        self.server_started = False

    def start_server(self) -> None:
        """Start the Prometheus metrics server."""
        if not self.server_started:
            try:
                start_http_server(self.port)
                self.server_started = True
                logger.info(f"Started Prometheus metrics server on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus metrics server: {str(e)}")

    def record_request(self, source: str) -> None:
        UPSTREAM_REQUESTS.labels(source=source).inc()

    def record_cache_hit(self, source: str) -> None:
        CACHE_HITS.labels(source=source).inc()

    def record_api_error(self, source: str, error_type: str) -> None:
        """
        Record an API error.

        Args:
            source: Upstream name ('reddit' or 'redgifs')
            error_type: Type of API error (e.g., '5xx', '429', 'timeout')
        """
        API_ERRORS.labels(source=source, error_type=error_type).inc()

    def set_consecutive_errors(self, source: str, count: int) -> None:
        CONSECUTIVE_ERRORS.labels(source=source).set(count)

    def set_cooldown_active(self, source: str, active: bool) -> None:
        COOLDOWN_ACTIVE.labels(source=source).set(1 if active else 0)

    def record_videos_added(self, source: str, count: int = 1) -> None:
        """
        Record videos persisted by the scraper.

        Args:
            source: Upstream the videos came from
            count: Number of videos added
        """
        if count > 0:
            VIDEOS_ADDED.labels(source=source).inc(count)

    def set_known_videos(self, count: int) -> None:
        KNOWN_VIDEOS.set(count)

    def set_feed_size(self, count: int) -> None:
        FEED_SIZE.set(count)

    def set_latest_scrape_age(self, age_seconds: float) -> None:
        LATEST_SCRAPE_AGE.set(age_seconds)

    def time_request(self, source: str) -> "RequestTimer":
        """
        Create a context manager for timing API requests.

        Returns:
            RequestTimer context manager
        """
        return RequestTimer(source)

    def update_from_metrics_dict(self, metrics: Dict[str, Any]) -> None:
        """
        Update metrics from a scrape runner metrics dictionary.

        Args:
            metrics: Dictionary of metrics
        """
        if metrics.get("latest_scrape_age_sec") is not None:
            self.set_latest_scrape_age(metrics["latest_scrape_age_sec"])

        if "known_videos" in metrics:
            self.set_known_videos(metrics["known_videos"])


class RequestTimer:
    """Context manager for timing API requests."""

    def __init__(self, source: str):
        self.source = source
        self.start_time: Optional[float] = None

    def __enter__(self) -> "RequestTimer":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            REQUEST_DURATION.labels(source=self.source).observe(time.time() - self.start_time)
