"""
Feed controller: keeps a growing, shuffled, de-duplicated video list
replenished ahead of the viewer's scroll position.
"""

import asyncio
import logging
import random
import time
from enum import Enum
from typing import Callable, Dict, List, Optional

from feed_aggregator.config import FeedConfig
from feed_aggregator.feed.dedup import SeenRegistry, merge_videos
from feed_aggregator.feed.sources import ContentSource
from feed_aggregator.models.upstream import Page
from feed_aggregator.models.video import Video
from feed_aggregator.storage.base import VideoStore

logger = logging.getLogger(__name__)

Listener = Callable[[List[Video]], None]


class FeedState(Enum):
    INITIAL_LOAD = "initial_load"
    STEADY_STATE = "steady_state"
    LOADING_MORE = "loading_more"


class FeedController:
    """
    Per-session feed state machine.

    Only one load-more cycle runs at a time. Every upstream call is bounded by
    a timeout, and results that arrive after ``reset()`` are discarded.
    """

    def __init__(
        self,
        store: VideoStore,
        primary: ContentSource,
        fallback: Optional[ContentSource],
        config: FeedConfig,
        rng: Optional[random.Random] = None,
        prometheus_exporter=None,
    ):
        """
        Initialize the feed controller.

        Args:
            store: Local video store read during the initial load
            primary: Source paged through on every load-more cycle
            fallback: Source tried once the empty streak hits its threshold
            config: Feed tunables
            rng: Random generator (inject a seeded one for reproducible feeds)
            prometheus_exporter: Optional Prometheus metrics exporter
        """
        self.store = store
        self.primary = primary
        self.fallback = fallback
        self.config = config
        self.prometheus_exporter = prometheus_exporter
        self._rng = rng or random.Random()

        self._listeners: List[Listener] = []
        self._generation = 0
        self._init_session_state()

    def _init_session_state(self) -> None:
        self._videos: List[Video] = []
        self.registry = SeenRegistry()
        self._cursors: Dict[str, Optional[str]] = {}
        self._fallback_cursor: Optional[str] = None
        self._sort_index = 0
        self._empty_streak = 0
        self._duplicate_retries = 0
        self._initial_loading = False
        self._loading_more = False
        self._position = 0
        self._state = FeedState.INITIAL_LOAD

    @property
    def videos(self) -> List[Video]:
        return list(self._videos)

    @property
    def state(self) -> FeedState:
        return self._state

    @property
    def is_loading_more(self) -> bool:
        return self._loading_more

    @property
    def empty_streak(self) -> int:
        return self._empty_streak

    @property
    def duplicate_retries(self) -> int:
        return self._duplicate_retries

    @property
    def cursors(self) -> Dict[str, Optional[str]]:
        return dict(self._cursors)

    @property
    def fallback_cursor(self) -> Optional[str]:
        return self._fallback_cursor

    @property
    def position(self) -> int:
        return self._position

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked with the full list after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if self.prometheus_exporter:
            self.prometheus_exporter.set_feed_size(len(self._videos))
        snapshot = self.videos
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Feed listener failed: {e}")

    async def _load_local(self) -> List[Video]:
        # stores are not thread-safe; read on the loop thread
        return self.store.get_all_videos()

    async def _fetch_primary(self, category: str, limit: int, sort: str, cursor: Optional[str]) -> Page[Video]:
        return await asyncio.wait_for(
            self.primary.fetch_page(category, limit, sort, cursor),
            timeout=self.config.fetch_timeout_sec,
        )

    async def _load_initial_remote(self, categories: List[str]) -> List[Video]:
        results = await asyncio.gather(
            *(self._fetch_primary(category, self.config.initial_limit_per_sub, "hot", None) for category in categories),
            return_exceptions=True,
        )

        videos: List[Video] = []
        for category, result in zip(categories, results):
            if isinstance(result, BaseException):
                logger.warning(f"Initial fetch failed for {category}: {result!r}")
                continue
            if not result.degraded:
                self._cursors[category] = result.next_cursor
            videos.extend(result.items)
        return sorted(videos, key=lambda video: video.likes_count, reverse=True)

    async def initial_load(self) -> List[Video]:
        """
        Build the first feed from local videos plus a random subset of categories.

        Remote failures never block the transition to steady state.

        Returns:
            The visible list after the load (empty if a reset intervened or
            another initial load is already running)
        """
        if self._initial_loading:
            return []

        self._initial_loading = True
        generation = self._generation
        started = time.time()
        pool = self.config.initial_pool or self.config.subreddit_pool
        categories = self._rng.sample(pool, min(self.config.initial_subreddit_count, len(pool)))
        logger.info(f"Initial load from local store and {', '.join(categories)}")

        try:
            local_result, remote_result = await asyncio.gather(
                self._load_local(),
                self._load_initial_remote(categories),
                return_exceptions=True,
            )
        finally:
            if generation == self._generation:
                self._initial_loading = False

        if generation != self._generation:
            logger.info("Discarding initial load results after reset")
            return []

        if isinstance(local_result, BaseException):
            logger.error(f"Failed to load local videos: {local_result!r}")
            local_result = []
        if isinstance(remote_result, BaseException):
            logger.error(f"Remote initial fetch failed: {remote_result!r}")
            remote_result = []

        merged = merge_videos(self.registry, local_result)
        merged.extend(merge_videos(self.registry, remote_result))
        self._rng.shuffle(merged)

        self._videos = merged
        self._state = FeedState.STEADY_STATE
        logger.info(
            f"Initial load: {len(merged)} videos ({len(self.registry)} unique keys tracked) "
            f"in {time.time() - started:.2f}s"
        )
        self._notify()
        return self.videos

    def set_position(self, index: int) -> None:
        """Record the viewer's current index in the visible list."""
        self._position = max(0, index)

    def should_load_more(self) -> bool:
        if self._state == FeedState.INITIAL_LOAD or self._loading_more or not self._videos:
            return False
        return self._position >= len(self._videos) - self.config.lookahead

    async def maybe_load_more(self) -> bool:
        """Start a load-more cycle if the viewer is inside the lookahead window."""
        if not self.should_load_more():
            return False
        await self.load_more()
        return True

    async def load_more(self) -> int:
        """
        Run one load-more cycle.

        Failures and timeouts are logged and leave the visible list unchanged.

        Returns:
            Number of videos appended
        """
        if self._loading_more or self._initial_loading:
            return 0

        # set before the first await so concurrent triggers see it
        self._loading_more = True
        self._state = FeedState.LOADING_MORE
        generation = self._generation
        started = time.time()
        added = 0

        try:
            added = await self._load_cycle(generation)
            if added:
                logger.info(f"Load complete in {(time.time() - started) * 1000:.0f}ms (+{added} videos)")
        except asyncio.TimeoutError:
            logger.error(f"Load more timed out after {time.time() - started:.2f}s")
        except Exception as e:
            logger.error(f"Failed to load more videos: {e!r}")
            logger.info(f"Load failed after {(time.time() - started) * 1000:.0f}ms")
        finally:
            if generation == self._generation:
                self._loading_more = False
                self._state = FeedState.STEADY_STATE

        return added

    def _next_sort(self) -> str:
        methods = self.config.sort_methods
        sort = methods[self._sort_index % len(methods)]
        self._sort_index += 1
        return sort

    def _pick_category(self, exclude: Optional[str] = None) -> str:
        pool = self.config.subreddit_pool
        candidates = [category for category in pool if category != exclude] or list(pool)
        return self._rng.choice(candidates)

    async def _load_cycle(self, generation: int) -> int:
        previous: Optional[str] = None

        for attempt in range(self.config.max_duplicate_retries + 1):
            if attempt:
                self._duplicate_retries += 1
                await asyncio.sleep(self.config.duplicate_retry_delay_sec)
                if generation != self._generation:
                    return 0

            sort = self._next_sort()
            category = self._pick_category(exclude=previous)
            cursor = self._cursors.get(category)
            logger.info(f"Loading {category}, sort={sort}, after={cursor or 'none'}")

            page = await self._fetch_primary(category, self.config.page_size, sort, cursor)
            if generation != self._generation:
                return 0

            if not page.degraded:
                self._cursors[category] = page.next_cursor

            if not page.items:
                logger.info(f"No items for {category} (after={cursor or 'none'})")
                return await self._record_empty(generation)

            fresh = merge_videos(self.registry, page.items)
            logger.info(f"Got {len(fresh)} unique videos (filtered {len(page.items) - len(fresh)} duplicates)")
            if fresh:
                self._append(fresh)
                return len(fresh)

            logger.info("All videos were duplicates, rotating subreddit")
            previous = category

        logger.warning(f"Still only duplicates after {self.config.max_duplicate_retries} retries")
        return await self._record_empty(generation)

    async def _record_empty(self, generation: int) -> int:
        self._empty_streak += 1
        logger.info(f"Empty attempts: {self._empty_streak}")
        if self._empty_streak >= self.config.empty_streak_threshold and self.fallback is not None:
            return await self._load_fallback(generation)
        return 0

    async def _load_fallback(self, generation: int) -> int:
        cursor = self._fallback_cursor
        logger.info(f"Attempting {self.fallback.name} fallback (page={cursor or 'first'})")
        try:
            page = await asyncio.wait_for(
                self.fallback.fetch_page(",".join(self.config.fallback_tags), self.config.fallback_limit, None, cursor),
                timeout=self.config.fallback_timeout_sec,
            )
        except Exception as e:
            logger.warning(f"{self.fallback.name} fallback failed: {e!r}")
            return 0

        if generation != self._generation:
            return 0

        if not page.degraded:
            self._fallback_cursor = page.next_cursor

        fresh = merge_videos(self.registry, page.items)
        if not fresh:
            logger.info(f"{self.fallback.name} returned no valid items")
            return 0

        logger.info(f"Added {len(fresh)} {self.fallback.name} items as fallback")
        self._append(fresh)
        return len(fresh)

    def _append(self, fresh: List[Video]) -> None:
        self._rng.shuffle(fresh)
        self._videos.extend(fresh)
        self._empty_streak = 0
        self._notify()

    def reset(self) -> None:
        """Drop all session state; in-flight results from before the reset are discarded."""
        self._generation += 1
        self._init_session_state()
        logger.info("Feed reset")
        self._notify()
