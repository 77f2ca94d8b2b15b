"""Tests for the monitoring module."""

import unittest
from unittest.mock import patch

from feed_aggregator.monitoring.metrics import PrometheusExporter, RequestTimer


class TestPrometheusExporter(unittest.TestCase):
    """Test cases for the PrometheusExporter class."""

    def setUp(self):
        self.exporter = PrometheusExporter()

    def test_init(self):
        self.assertEqual(self.exporter.port, 8000)
        self.assertFalse(self.exporter.server_started)

    def test_start_server(self):
        with patch("feed_aggregator.monitoring.metrics.start_http_server") as mock_start_server:
            self.exporter.start_server()
            self.exporter.start_server()

            mock_start_server.assert_called_once_with(8000)
            self.assertTrue(self.exporter.server_started)

    def test_start_server_port_in_use(self):
        with patch("feed_aggregator.monitoring.metrics.start_http_server", side_effect=OSError("in use")):
            self.exporter.start_server()

        self.assertFalse(self.exporter.server_started)

    def test_record_api_error(self):
        with patch("feed_aggregator.monitoring.metrics.API_ERRORS") as mock_counter:
            self.exporter.record_api_error("reddit", "5xx")

            mock_counter.labels.assert_called_once_with(source="reddit", error_type="5xx")
            mock_counter.labels.return_value.inc.assert_called_once()

    def test_record_request_and_cache_hit(self):
        with patch("feed_aggregator.monitoring.metrics.UPSTREAM_REQUESTS") as mock_requests, \
                patch("feed_aggregator.monitoring.metrics.CACHE_HITS") as mock_hits:
            self.exporter.record_request("redgifs")
            self.exporter.record_cache_hit("redgifs")

            mock_requests.labels.assert_called_once_with(source="redgifs")
            mock_hits.labels.assert_called_once_with(source="redgifs")

    def test_cooldown_gauge(self):
        with patch("feed_aggregator.monitoring.metrics.COOLDOWN_ACTIVE") as mock_gauge:
            self.exporter.set_cooldown_active("reddit", True)
            mock_gauge.labels.return_value.set.assert_called_once_with(1)

    def test_record_videos_added_ignores_zero(self):
        with patch("feed_aggregator.monitoring.metrics.VIDEOS_ADDED") as mock_counter:
            self.exporter.record_videos_added("reddit", 0)
            mock_counter.labels.assert_not_called()

            self.exporter.record_videos_added("reddit", 4)
            mock_counter.labels.return_value.inc.assert_called_once_with(4)

    def test_update_from_metrics_dict(self):
        with patch("feed_aggregator.monitoring.metrics.LATEST_SCRAPE_AGE") as mock_age, \
                patch("feed_aggregator.monitoring.metrics.KNOWN_VIDEOS") as mock_known:
            self.exporter.update_from_metrics_dict({"latest_scrape_age_sec": None, "known_videos": 12})

            mock_age.set.assert_not_called()
            mock_known.set.assert_called_once_with(12)

    def test_time_request(self):
        with patch("feed_aggregator.monitoring.metrics.REQUEST_DURATION") as mock_histogram:
            with self.exporter.time_request("reddit") as timer:
                self.assertIsInstance(timer, RequestTimer)

            mock_histogram.labels.assert_called_once_with(source="reddit")
            mock_histogram.labels.return_value.observe.assert_called_once()
            self.assertGreaterEqual(mock_histogram.labels.return_value.observe.call_args.args[0], 0)


if __name__ == "__main__":
    unittest.main()
