"""Upstream clients, rate limiting, error handling and the scheduled scraper."""
