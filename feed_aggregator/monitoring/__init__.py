"""Prometheus metrics for the feed aggregator."""
