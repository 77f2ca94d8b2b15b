"""Tests for the error handler module."""

import unittest
from unittest.mock import MagicMock, patch

from feed_aggregator.collector.error_handler import (
    ConfigurationError,
    ConsecutiveErrorTracker,
    RateLimitedError,
    UpstreamError,
)


class TestConsecutiveErrorTracker(unittest.TestCase):
    """Test cases for the ConsecutiveErrorTracker class."""

    def setUp(self):
        self.threshold = 3
        self.tracker = ConsecutiveErrorTracker(self.threshold, cooldown_sec=900.0)

    def test_record_error(self):
        self.tracker.record_error()
        self.assertEqual(self.tracker.consecutive_errors, 1)

        self.tracker.record_error()
        self.assertEqual(self.tracker.consecutive_errors, 2)
        self.assertFalse(self.tracker.in_cooldown())

    def test_record_success(self):
        self.tracker.record_error()
        self.tracker.record_error()
        self.tracker.record_success()
        self.assertEqual(self.tracker.consecutive_errors, 0)

    @patch("feed_aggregator.collector.error_handler.time.time", return_value=5000.0)
    def test_threshold_starts_cooldown(self, _mock_time):
        for _ in range(self.threshold):
            self.tracker.record_error()

        self.assertTrue(self.tracker.should_abort())
        self.assertEqual(self.tracker.cooldown_until, 5900.0)
        self.assertTrue(self.tracker.in_cooldown())
        self.assertEqual(self.tracker.cooldown_remaining(), 900.0)

    def test_cooldown_expires(self):
        with patch("feed_aggregator.collector.error_handler.time.time", return_value=5000.0):
            for _ in range(self.threshold):
                self.tracker.record_error()

        with patch("feed_aggregator.collector.error_handler.time.time", return_value=5901.0):
            self.assertFalse(self.tracker.in_cooldown())
            self.assertEqual(self.tracker.cooldown_remaining(), 0.0)

    def test_success_does_not_cancel_running_cooldown(self):
        """A reset counter must not shorten a cooldown that has already started."""
        for _ in range(self.threshold):
            self.tracker.record_error()
        self.tracker.record_success()

        self.assertEqual(self.tracker.consecutive_errors, 0)
        self.assertTrue(self.tracker.in_cooldown())

    def test_prometheus_exporter_updates(self):
        exporter = MagicMock()
        tracker = ConsecutiveErrorTracker(2, cooldown_sec=60.0, source="reddit", prometheus_exporter=exporter)

        tracker.record_error("5xx")
        tracker.record_error("timeout")
        tracker.record_success()

        exporter.record_api_error.assert_any_call("reddit", "5xx")
        exporter.record_api_error.assert_any_call("reddit", "timeout")
        exporter.set_consecutive_errors.assert_called_with("reddit", 0)
        exporter.set_cooldown_active.assert_called_once_with("reddit", True)


class TestErrorTaxonomy(unittest.TestCase):

    def test_rate_limited_is_upstream_error_with_status(self):
        error = RateLimitedError()
        self.assertIsInstance(error, UpstreamError)
        self.assertEqual(error.status, 429)

    def test_configuration_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigurationError, ValueError))


if __name__ == "__main__":
    unittest.main()
