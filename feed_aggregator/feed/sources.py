"""Content source interface consumed by the feed controller."""

from typing import Optional, Protocol

from feed_aggregator.collector.reddit_client import RedditClient
from feed_aggregator.collector.redgifs_client import RedGifsClient
from feed_aggregator.models.mapping import reddit_record_to_video, redgifs_media_to_video
from feed_aggregator.models.upstream import Page
from feed_aggregator.models.video import Video


class ContentSource(Protocol):
    """
    Anything that can serve one page of canonical videos for a category.

    ``category`` is a subreddit for Reddit and a comma-separated tag list for
    RedGifs; ``cursor`` is whatever opaque value the previous page returned.
    """

    name: str

    async def fetch_page(
        self,
        category: str,
        limit: int,
        sort: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> Page[Video]:
        ...


class RedditSource:
    """Adapts RedditClient pages of records into pages of videos."""

    name = "reddit"

    def __init__(self, client: RedditClient):
        self.client = client

    async def fetch_page(
        self,
        category: str,
        limit: int,
        sort: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> Page[Video]:
        page = await self.client.fetch_page(category, limit, sort or "hot", cursor)
        return Page(
            items=[reddit_record_to_video(record) for record in page.items],
            next_cursor=page.next_cursor,
            degraded=page.degraded,
        )


class RedGifsSource:
    """Adapts RedGifsClient media into pages of videos."""

    name = "redgifs"

    def __init__(self, client: RedGifsClient):
        self.client = client

    async def fetch_page(
        self,
        category: str,
        limit: int,
        sort: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> Page[Video]:
        page = await self.client.fetch_page(category, limit, sort, cursor)
        videos = [redgifs_media_to_video(media) for media in page.items if media.get("id") and media.get("url")]
        return Page(items=videos, next_cursor=page.next_cursor, degraded=page.degraded)
