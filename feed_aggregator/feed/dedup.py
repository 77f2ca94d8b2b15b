"""
Dedup key derivation and seen-set bookkeeping.

Two URLs that resolve to the same underlying media share a dedup key, no
matter whether they are wrapped in the same-origin proxy, point at a
different Reddit CDN rendition, or use Imgur's legacy ``.gifv`` suffix.
"""

import logging
from typing import Callable, Iterable, List, Optional, Set, TypeVar
from urllib.parse import parse_qs, quote, urlsplit

from feed_aggregator.models.video import Video

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROXY_PREFIX = "/api/proxy?"
UPLOADS_PREFIX = "/uploads"
REDDIT_VIDEO_HOST = "v.redd.it"


def proxify(url: str) -> str:
    """Wrap an upstream URL in the same-origin proxy; local uploads pass through."""
    if not url or url.startswith(UPLOADS_PREFIX) or url.startswith(PROXY_PREFIX):
        return url
    return f"{PROXY_PREFIX}url={quote(url, safe='')}"


def unwrap_proxy(url: str) -> str:
    """Recover the upstream URL from a proxy reference; other URLs are returned as-is."""
    if not url or not url.startswith(PROXY_PREFIX):
        return url or ""
    query = url.split("?", 1)[1]
    values = parse_qs(query).get("url")
    return values[0] if values else url


def dedup_key(url: str) -> str:
    """
    Derive the canonical media key for a URL.

    Pure function: unwrap the proxy, lower-case host and path, collapse
    ``v.redd.it`` paths to their first segment and rewrite ``.gifv`` to
    ``.mp4``. Query strings and fragments are ignored. Input that cannot be
    parsed into a host is returned unchanged.
    """
    raw = unwrap_proxy(url or "")
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw

    host = (parts.hostname or "").lower()
    if not host:
        return raw

    path = parts.path.lower()
    if host.endswith(REDDIT_VIDEO_HOST):
        segments = [segment for segment in path.split("/") if segment]
        path = "/" + (segments[0] if segments else "")

    if path.endswith(".gifv"):
        path = path[: -len(".gifv")] + ".mp4"

    return f"{host}{path}"


class SeenRegistry:
    """
    Seen IDs and seen media keys for one feed-building session or scrape run.

    ``accept`` is a check-then-insert with no suspension point, so interleaved
    coroutines on one event loop can never accept the same candidate twice.
    """

    def __init__(self) -> None:
        self.seen_ids: Set[str] = set()
        self.seen_keys: Set[str] = set()

    @classmethod
    def from_videos(cls, videos: Iterable[Video]) -> "SeenRegistry":
        registry = cls()
        for video in videos:
            registry.mark(video.id, video.video_url)
        return registry

    def is_seen(self, item_id: Optional[str], url: str) -> bool:
        key = dedup_key(url)
        return (item_id is not None and item_id in self.seen_ids) or (bool(key) and key in self.seen_keys)

    def mark(self, item_id: Optional[str], url: str) -> None:
        if item_id:
            self.seen_ids.add(item_id)
        key = dedup_key(url)
        if key:
            self.seen_keys.add(key)

    def accept(self, item_id: Optional[str], url: str) -> bool:
        """Accept a candidate if both its ID and media key are unseen, marking both."""
        key = dedup_key(url)
        if not key:
            return False
        if (item_id and item_id in self.seen_ids) or key in self.seen_keys:
            return False
        if item_id:
            self.seen_ids.add(item_id)
        self.seen_keys.add(key)
        return True

    def __len__(self) -> int:
        return len(self.seen_keys)


def merge_candidates(
    registry: SeenRegistry,
    candidates: Iterable[T],
    id_of: Callable[[T], Optional[str]],
    url_of: Callable[[T], str],
) -> List[T]:
    """
    Filter candidates through the registry, keeping input order.

    Re-merging items that were already accepted is a no-op.
    """
    accepted = []
    rejected = 0
    for candidate in candidates:
        if registry.accept(id_of(candidate), url_of(candidate)):
            accepted.append(candidate)
        else:
            rejected += 1
    if rejected:
        logger.debug(f"Filtered {rejected} duplicate candidates")
    return accepted


def merge_videos(registry: SeenRegistry, videos: Iterable[Video]) -> List[Video]:
    return merge_candidates(registry, videos, lambda v: v.id, lambda v: v.video_url)
