"""Reddit API client with OAuth, response caching, throttling and cooldown."""

import asyncio
import logging
import time
from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from feed_aggregator.collector.cache import ResponseCache
from feed_aggregator.collector.error_handler import (
    ConfigurationError,
    ConsecutiveErrorTracker,
    DataShapeError,
    RateLimitedError,
    UpstreamError,
)
from feed_aggregator.collector.rate_limiter import RateLimiter
from feed_aggregator.config import RedditConfig
from feed_aggregator.models.mapping import records_from_listing
from feed_aggregator.models.upstream import Page, RedditVideoRecord

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
API_BASE = "https://oauth.reddit.com"

CacheKey = Tuple[str, int, str, str]


class RedditClient:
    """
    Client for Reddit video listings.

    One instance per process owns the OAuth token, the response cache, the
    throttle and the cooldown state; pass it by reference to every caller.
    """

    def __init__(
        self,
        config: RedditConfig,
        session: Optional[aiohttp.ClientSession] = None,
        prometheus_exporter=None,
    ):
        """
        Initialize the Reddit client.

        Args:
            config: Reddit credentials and tunables
            session: Optional aiohttp session (one is created lazily otherwise)
            prometheus_exporter: Optional Prometheus metrics exporter
        """
        self.config = config
        self.prometheus_exporter = prometheus_exporter
        self._session = session
        self._owns_session = session is None

        self.cache: ResponseCache[Page[RedditVideoRecord]] = ResponseCache(config.cache_ttl_sec)
        self.rate_limiter = RateLimiter(config.base_delay_sec, config.cooldown_sec)
        self.error_tracker = ConsecutiveErrorTracker(
            threshold=config.max_errors_before_cooldown,
            cooldown_sec=config.cooldown_sec,
            source="reddit",
            prometheus_exporter=prometheus_exporter,
        )

        self._token = ""
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def __aenter__(self) -> "RedditClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_sec),
                headers={"User-Agent": self.config.user_agent},
                trust_env=True,  # honours HTTPS_PROXY / HTTP_PROXY
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            logger.info("Closing Reddit client session")
            await self._session.close()
        self._session = None

    def _has_credentials(self) -> bool:
        return all([
            self.config.client_id,
            self.config.client_secret,
            self.config.username,
            self.config.password,
        ])

    async def _get_token(self) -> str:
        """
        Return a cached bearer token or obtain one via the password grant.

        Raises:
            ConfigurationError: If credentials are missing or rejected
        """
        async with self._token_lock:
            if self._token and time.time() < self._token_expires_at:
                if self.config.debug:
                    logger.debug("Using cached Reddit OAuth token")
                return self._token

            if not self._has_credentials():
                raise ConfigurationError(
                    "Missing Reddit OAuth credentials. Set REDDIT_CLIENT_ID, REDDIT_CLIENT_SECRET, "
                    "REDDIT_USERNAME, REDDIT_PASSWORD in environment variables."
                )

            logger.info("Fetching new Reddit OAuth token")
            data = {
                "grant_type": "password",
                "username": self.config.username,
                "password": self.config.password,
                "scope": "read identity",
            }
            try:
                async with self._get_session().post(
                    TOKEN_URL,
                    data=data,
                    headers={
                        "Authorization": aiohttp.BasicAuth(self.config.client_id, self.config.client_secret).encode(),
                        "User-Agent": self.config.user_agent,
                    },
                ) as response:
                    if response.status in (400, 401, 403):
                        raise ConfigurationError(f"Reddit rejected OAuth credentials (HTTP {response.status})")
                    if response.status == 429:
                        raise RateLimitedError("Rate limited while fetching OAuth token")
                    if response.status >= 400:
                        raise UpstreamError(f"OAuth token request failed: HTTP {response.status}", response.status)
                    payload = await response.json(content_type=None)
            except aiohttp.ClientError as e:
                if isinstance(e, asyncio.TimeoutError):
                    raise
                raise UpstreamError(f"OAuth token request failed: {e}") from e

            if not isinstance(payload, dict):
                raise UpstreamError("OAuth token response is not an object")
            if payload.get("error"):
                raise ConfigurationError(f"Reddit rejected OAuth credentials: {payload['error']}")
            access_token = payload.get("access_token")
            if not access_token:
                raise UpstreamError("OAuth token response missing access_token")

            expires_in = int(payload.get("expires_in") or 3600)
            self._token = access_token
            self._token_expires_at = time.time() + max(0, expires_in - self.config.token_refresh_margin_sec)
            logger.info(f"Reddit OAuth token obtained (expires in {expires_in}s)")
            return self._token

    async def _fetch_listing(
        self,
        subreddit: str,
        sort: str,
        limit: int,
        after: Optional[str],
        token: str,
    ) -> Tuple[List[RedditVideoRecord], Optional[str]]:
        url = f"{API_BASE}/r/{subreddit}/{sort}.json"
        params = {"limit": str(limit), "raw_json": "1", "include_over_18": "on"}
        if after:
            params["after"] = after
        headers = {"Authorization": f"Bearer {token}", "User-Agent": self.config.user_agent}

        if self.prometheus_exporter:
            self.prometheus_exporter.record_request("reddit")
            timer = self.prometheus_exporter.time_request("reddit")
        else:
            timer = None

        try:
            with timer if timer else nullcontext():
                async with self._get_session().get(url, params=params, headers=headers) as response:
                    self.rate_limiter.update_from_headers(response.headers)
                    if response.status == 429:
                        raise RateLimitedError()
                    if response.status == 401:
                        # token revoked or expired early; force a fresh grant next time
                        self._token = ""
                        self._token_expires_at = 0.0
                    if response.status >= 400:
                        raise UpstreamError(f"HTTP {response.status}", response.status)
                    try:
                        payload = await response.json(content_type=None)
                    except ValueError as e:
                        raise DataShapeError(f"Reddit response is not JSON: {e}") from e
        except aiohttp.ClientError as e:
            if isinstance(e, asyncio.TimeoutError):
                raise
            raise UpstreamError(f"Connection error: {e}") from e

        return records_from_listing(payload)

    def _fallback(self, key: CacheKey) -> Page[RedditVideoRecord]:
        """Degraded answer: last cached page for the exact key, else empty."""
        stale = self.cache.get_stale(key)
        if stale is not None:
            logger.warning(f"Using stale cache as fallback for r/{key[0]} page {key[3]}")
            return Page(items=list(stale.items), next_cursor=None, degraded=True)
        return Page(items=[], next_cursor=None, degraded=True)

    async def fetch_page(
        self,
        subreddit: str = "funnyvideos",
        limit: int = 25,
        sort: str = "hot",
        after: Optional[str] = None,
    ) -> Page[RedditVideoRecord]:
        """
        Fetch one page of video posts from a subreddit.

        Never raises for upstream failures; the worst case is an empty page.

        Args:
            subreddit: Name of the subreddit
            limit: Number of posts to request
            sort: Sort order ('hot', 'top', 'rising', 'new')
            after: Pagination cursor from a previous page

        Returns:
            Page of playable video records and the next cursor

        Raises:
            ConfigurationError: If credentials are missing or rejected
        """
        if self.config.disabled:
            return Page.empty()

        key: CacheKey = (subreddit, limit, sort, after or "first")

        cached = self.cache.get_fresh(key)
        if cached is not None:
            if self.prometheus_exporter:
                self.prometheus_exporter.record_cache_hit("reddit")
            logger.info(f"Using cached data for r/{subreddit} page {after or 'first'} ({len(cached)} videos)")
            return Page(items=list(cached.items), next_cursor=cached.next_cursor)

        if self.error_tracker.in_cooldown():
            logger.info(f"Reddit cooldown active for {self.error_tracker.cooldown_remaining():.0f}s")
            return self._fallback(key)

        try:
            await self.rate_limiter.pre_request()
            token = await self._get_token()
            records, next_cursor = await self._fetch_listing(subreddit, sort, limit, after, token)
        except ConfigurationError:
            raise
        except RateLimitedError:
            logger.error(f"Reddit API rate limited for r/{subreddit}")
            if key in self.cache:
                return self._fallback(key)
            self.error_tracker.record_error("429")
            self.rate_limiter.handle_429()
            return self._fallback(key)
        except asyncio.TimeoutError:
            logger.error(f"Reddit API timeout for r/{subreddit} after {self.config.timeout_sec}s")
            self.error_tracker.record_error("timeout")
            self.rate_limiter.handle_timeout()
            return self._fallback(key)
        except UpstreamError as e:
            logger.error(f"Reddit API error for r/{subreddit}: {e}")
            if e.status is not None and 400 <= e.status < 500:
                # client errors (banned/private subreddit) say nothing about upstream health
                return self._fallback(key)
            self.error_tracker.record_error("5xx" if e.status else "connection")
            self.rate_limiter.handle_timeout()
            return self._fallback(key)
        except DataShapeError as e:
            logger.error(f"Invalid Reddit API response for r/{subreddit}: {e}")
            return Page.empty()

        page = Page(items=records, next_cursor=next_cursor)
        self.cache.set(key, page)
        self.error_tracker.record_success()
        logger.info(
            f"Fetched {len(records)} videos from r/{subreddit} page {after or 'first'} (next: {next_cursor})"
        )
        return page

    async def fetch_multiple(
        self,
        subreddits: Optional[List[str]] = None,
        limit_per_sub: int = 10,
        sort: str = "hot",
        after_cursors: Optional[Dict[str, str]] = None,
    ) -> List[RedditVideoRecord]:
        """
        Fetch one page from each subreddit concurrently.

        Individual subreddit failures are logged and skipped.

        Returns:
            Union of all videos sorted by score, highest first
        """
        subreddits = subreddits or ["funnyvideos", "videos", "unexpected"]
        after_cursors = after_cursors or {}
        started = time.time()

        results = await asyncio.gather(
            *(self.fetch_page(sub, limit_per_sub, sort, after_cursors.get(sub)) for sub in subreddits),
            return_exceptions=True,
        )

        videos: List[RedditVideoRecord] = []
        for subreddit, result in zip(subreddits, results):
            if isinstance(result, ConfigurationError):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch from r/{subreddit}: {result}")
                continue
            videos.extend(result.items)

        logger.info(
            f"Got {len(videos)} total videos from {len(subreddits)} subreddits "
            f"in {time.time() - started:.2f}s"
        )
        # sorted() is stable, so equal scores keep subreddit order
        return sorted(videos, key=lambda record: record["score"], reverse=True)

    def clear_cache(self) -> None:
        self.cache.clear()

    @property
    def state(self) -> Dict[str, Any]:
        return {
            "consecutive_errors": self.error_tracker.consecutive_errors,
            "cooldown_until": self.error_tracker.cooldown_until,
            "next_allowed_at": self.rate_limiter.next_allowed_at,
            "cache_size": len(self.cache),
            "has_token": bool(self._token),
        }
