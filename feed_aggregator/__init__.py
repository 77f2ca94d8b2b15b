"""Feed aggregation and deduplication engine for the short-video feed."""

__version__ = "0.1.0"
