"""Normalization, deduplication and the live feed controller."""
