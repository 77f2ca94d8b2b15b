"""
Models package for the feed aggregator.

Canonical pydantic models and the transient upstream shapes. Mapping
functions live in ``feed_aggregator.models.mapping``.
"""

from .upstream import Page, RedditVideoRecord, RedGifsMedia
from .video import Bookmark, Comment, Like, NewVideo, Video, VideoSource

__all__ = [
    "Bookmark",
    "Comment",
    "Like",
    "NewVideo",
    "Page",
    "RedditVideoRecord",
    "RedGifsMedia",
    "Video",
    "VideoSource",
]
