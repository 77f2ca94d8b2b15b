"""RedGifs API client with temporary-token auth and per-category caching."""

import asyncio
import logging
import math
import random
import time
from contextlib import nullcontext
from typing import List, Optional, Sequence

import aiohttp

from feed_aggregator.collector.cache import ResponseCache
from feed_aggregator.collector.error_handler import UpstreamError
from feed_aggregator.config import RedGifsConfig
from feed_aggregator.models.mapping import redgifs_item_to_media
from feed_aggregator.models.upstream import Page, RedGifsMedia

logger = logging.getLogger(__name__)

AUTH_URL = "https://api.redgifs.com/v2/auth/temporary"
TRENDING_URL = "https://api.redgifs.com/v2/gifs/trending"
SEARCH_URL = "https://api.redgifs.com/v2/gifs/search"

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
}


class RedGifsClient:
    """
    Client for RedGifs trending and tag search.

    Owns the temporary auth token and the per-category media cache. Errors
    never propagate out of the fetch methods: stale cache or an empty list
    is returned instead.
    """

    def __init__(
        self,
        config: RedGifsConfig,
        session: Optional[aiohttp.ClientSession] = None,
        prometheus_exporter=None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.prometheus_exporter = prometheus_exporter
        self._session = session
        self._owns_session = session is None
        self._rng = rng or random.Random()

        self.cache: ResponseCache[List[RedGifsMedia]] = ResponseCache(config.cache_ttl_sec)
        self._token = ""
        self._token_expires_at = 0.0

    async def __aenter__(self) -> "RedGifsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_sec),
                headers=DEFAULT_HEADERS,
                trust_env=True,
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _request_kwargs(self) -> dict:
        return {"proxy": self.config.proxy} if self.config.proxy else {}

    async def _get_token(self) -> str:
        """Return the cached temporary token or fetch a new one."""
        if self._token and self._token_expires_at > time.time():
            if self.config.debug:
                logger.debug("Using cached RedGifs auth token")
            return self._token

        logger.info("Fetching new RedGifs auth token")
        async with self._get_session().get(AUTH_URL, **self._request_kwargs()) as response:
            if response.status >= 400:
                raise UpstreamError(f"RedGifs auth failed: HTTP {response.status}", response.status)
            payload = await response.json(content_type=None)

        token = payload.get("token") if isinstance(payload, dict) else None
        if not token:
            raise UpstreamError("Invalid RedGifs auth response")

        self._token = token
        # tokens live 24 hours; refresh an hour early
        self._token_expires_at = time.time() + self.config.token_ttl_sec
        return self._token

    def _is_trending(self, category: str) -> bool:
        return category.lower() in {alias.lower() for alias in self.config.trending_aliases}

    async def fetch_category(self, category: str, page: int = 1, count: int = 40) -> List[RedGifsMedia]:
        """
        Fetch media for one category or search term.

        Args:
            category: Trending alias or free-text search term
            page: 1-based page number
            count: Items per page

        Returns:
            Media items; stale cached items on error, else an empty list
        """
        cache_key = f"{category}-{page}-{count}"
        cached = self.cache.get_fresh(cache_key)
        if cached is not None:
            if self.prometheus_exporter:
                self.prometheus_exporter.record_cache_hit("redgifs")
            logger.debug(f"Using cached data for {category}")
            return list(cached)

        if self._is_trending(category):
            url = TRENDING_URL
            params = {"count": str(count), "page": str(page)}
        else:
            url = SEARCH_URL
            params = {"count": str(count), "page": str(page), "search_text": category, "order": "trending"}

        if self.prometheus_exporter:
            self.prometheus_exporter.record_request("redgifs")
            timer = self.prometheus_exporter.time_request("redgifs")
        else:
            timer = None

        try:
            token = await self._get_token()
            with timer if timer else nullcontext():
                async with self._get_session().get(
                    url,
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                    **self._request_kwargs(),
                ) as response:
                    if response.status == 401:
                        self._token = ""
                        self._token_expires_at = 0.0
                    if response.status >= 400:
                        raise UpstreamError(f"HTTP {response.status}", response.status)
                    payload = await response.json(content_type=None)
        except (UpstreamError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Error fetching RedGifs category {category}: {e}")
            if self.prometheus_exporter:
                self.prometheus_exporter.record_api_error("redgifs", type(e).__name__)
            stale = self.cache.get_stale(cache_key)
            if stale is not None:
                logger.warning(f"Using stale cache for {category} due to error")
                return list(stale)
            return []

        gifs = payload.get("gifs") if isinstance(payload, dict) else None
        if not isinstance(gifs, list):
            logger.error(f"Invalid response for RedGifs category {category}")
            return []

        media = [redgifs_item_to_media(item) for item in gifs if isinstance(item, dict) and item.get("id")]
        self.cache.set(cache_key, media)
        logger.info(f"Fetched {len(media)} items from RedGifs {category} (page {page})")
        return media

    async def fetch_media(
        self,
        categories: Optional[Sequence[str]] = None,
        media_types: Optional[Sequence[str]] = None,
        max_items: int = 100,
        delay_between_requests: Optional[float] = None,
        page: int = 1,
    ) -> List[RedGifsMedia]:
        """
        Fetch media across categories sequentially until the item budget is met.

        A randomized pause separates category requests so the upstream does
        not flag the traffic as abusive.

        Returns:
            At most ``max_items`` media items of the requested types
        """
        categories = list(categories or ["trending"])
        wanted_types = set(media_types or self.config.media_types)
        max_items = min(max_items or 100, self.config.max_items_cap)
        delay = self.config.delay_between_requests_sec if delay_between_requests is None else delay_between_requests
        started = time.time()

        try:
            await self._get_token()
        except (UpstreamError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"RedGifs scraper failed: {e}")
            return []

        items_per_category = math.ceil(max_items / len(categories))
        results: List[RedGifsMedia] = []

        for index, category in enumerate(categories):
            if index > 0 and delay > 0:
                wait = delay + self._rng.random()
                logger.debug(f"Waiting {wait:.2f}s before next RedGifs request")
                await asyncio.sleep(wait)

            media = await self.fetch_category(category, page, items_per_category)
            results.extend(item for item in media if item.get("media_type") in wanted_types)

            if len(results) >= max_items:
                break

        final = results[:max_items]
        logger.info(f"RedGifs fetch complete in {time.time() - started:.2f}s: {len(final)} items")
        return final

    async def fetch_trending(self, limit: int = 50) -> List[RedGifsMedia]:
        return await self.fetch_media(categories=["trending", "hot"], max_items=limit)

    async def fetch_by_tags(self, tags: Sequence[str], limit: int = 50) -> List[RedGifsMedia]:
        return await self.fetch_media(categories=tags, max_items=limit)

    async def fetch_page(
        self,
        category: str,
        limit: int = 24,
        sort: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> Page[RedGifsMedia]:
        """
        Page-shaped adapter used by the feed controller.

        ``category`` may be a comma-separated tag list; ``cursor`` is a page
        number. ``sort`` is accepted for interface parity and ignored.
        """
        categories = [part.strip() for part in category.split(",") if part.strip()] or ["trending"]
        page_number = int(cursor) if cursor and cursor.isdigit() else 1
        items = await self.fetch_media(categories=categories, max_items=limit, page=page_number)
        return Page(items=items, next_cursor=str(page_number + 1) if items else None)

    def clear_cache(self) -> None:
        """Clear the media cache and the cached auth token."""
        self.cache.clear()
        self._token = ""
        self._token_expires_at = 0.0
        logger.info("RedGifs cache cleared")
