"""Scheduled scraper that persists new upstream videos into the video store."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

from croniter import croniter

from feed_aggregator.collector.error_handler import ConfigurationError
from feed_aggregator.collector.reddit_client import RedditClient
from feed_aggregator.collector.redgifs_client import RedGifsClient
from feed_aggregator.config import Config
from feed_aggregator.feed.dedup import SeenRegistry, proxify
from feed_aggregator.models.video import NewVideo, VideoSource
from feed_aggregator.storage.base import VideoStore

logger = logging.getLogger(__name__)

SCRAPER_UPLOADER = "scraper"


class ScrapeRunner:
    """
    Runner for batch collection of upstream videos into storage.

    Each source is scraped independently against a seen-set rebuilt from
    storage, so a run never persists a media item the store already holds.
    """

    def __init__(
        self,
        config: Config,
        store: VideoStore,
        reddit_client: RedditClient,
        redgifs_client: RedGifsClient,
        prometheus_exporter=None,
    ):
        """
        Initialize the scrape runner.

        Args:
            config: Application configuration
            store: Video store new videos are written to
            reddit_client: Shared Reddit client
            redgifs_client: Shared RedGifs client
            prometheus_exporter: Optional Prometheus metrics exporter
        """
        self.config = config
        self.store = store
        self.reddit_client = reddit_client
        self.redgifs_client = redgifs_client
        self.prometheus_exporter = prometheus_exporter
        self.running = False
        self.latest_run_time = 0.0
        self._stop_event = asyncio.Event()
        self.stats: Dict[str, int] = {
            "total_added": 0,
            "reddit_added": 0,
            "redgifs_added": 0,
            "runs_completed": 0,
            "runs_with_data": 0,
            "runs_failed": 0,
        }

    def _registry_from_store(self) -> SeenRegistry:
        return SeenRegistry.from_videos(self.store.get_all_videos())

    async def scrape_reddit(self) -> int:
        """
        Fetch the configured subreddits and persist unseen videos.

        Returns:
            Number of videos added
        """
        scraper = self.config.scraper
        registry = self._registry_from_store()
        records = await self.reddit_client.fetch_multiple(scraper.subreddits, scraper.limit_per_sub, scraper.sort)

        added = 0
        for record in records:
            if not registry.accept(None, record["url"]):
                continue
            self.store.create_video(NewVideo(
                video_url=proxify(record["url"]),
                thumbnail_url=record.get("thumbnail") or None,
                title=record.get("title") or None,
                description=record.get("title") or None,
                username=record.get("author") or "reddit_user",
                uploader_ip=SCRAPER_UPLOADER,
                source=VideoSource.REDDIT,
            ))
            added += 1

        logger.info(f"Reddit scrape: {added} new of {len(records)} fetched")
        return added

    async def scrape_redgifs(self) -> int:
        """
        Fetch RedGifs trending (or the configured tags) and persist unseen media.

        Returns:
            Number of videos added
        """
        scraper = self.config.scraper
        registry = self._registry_from_store()
        if scraper.redgifs_tags:
            items = await self.redgifs_client.fetch_by_tags(scraper.redgifs_tags, scraper.redgifs_limit)
        else:
            items = await self.redgifs_client.fetch_trending(scraper.redgifs_limit)

        added = 0
        for item in items:
            url = item.get("url") or ""
            if not registry.accept(None, url):
                continue
            self.store.create_video(NewVideo(
                video_url=proxify(url),
                thumbnail_url=item.get("thumbnail_url") or None,
                title=item.get("title") or None,
                description=", ".join(item.get("tags") or []) or None,
                username=item.get("user_name") or "redgifs_user",
                uploader_ip=SCRAPER_UPLOADER,
                source=VideoSource.REDGIFS,
            ))
            added += 1

        logger.info(f"RedGifs scrape: {added} new of {len(items)} fetched")
        return added

    async def _scrape_source(self, name: str, scrape) -> int:
        try:
            return await scrape()
        except ConfigurationError as e:
            logger.error(f"{name} scrape skipped, configuration error: {e}")
        except Exception as e:
            logger.error(f"{name} scrape failed: {str(e)}", exc_info=True)
        return 0

    async def run_once(self) -> Dict[str, int]:
        """
        Run a single scrape of both sources.

        A failure in one source never prevents the other from running.

        Returns:
            Number of videos added per source
        """
        run_start = time.time()
        self.latest_run_time = run_start
        logger.info("Scrape start")

        reddit_added = await self._scrape_source("Reddit", self.scrape_reddit)
        redgifs_added = await self._scrape_source("RedGifs", self.scrape_redgifs)
        total = reddit_added + redgifs_added

        self.stats["reddit_added"] += reddit_added
        self.stats["redgifs_added"] += redgifs_added
        self.stats["total_added"] += total
        self.stats["runs_completed"] += 1
        if total > 0:
            self.stats["runs_with_data"] += 1

        if self.prometheus_exporter:
            self.prometheus_exporter.record_videos_added("reddit", reddit_added)
            self.prometheus_exporter.record_videos_added("redgifs", redgifs_added)
            self.prometheus_exporter.set_known_videos(len(self.store.get_all_videos()))

        logger.info(
            f"Scrape complete: +{reddit_added} from Reddit, +{redgifs_added} from RedGIFs "
            f"in {time.time() - run_start:.2f}s"
        )
        return {"reddit": reddit_added, "redgifs": redgifs_added}

    async def _guarded_run(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            self.stats["runs_failed"] += 1
            logger.error(f"Scrape run failed: {str(e)}")

    async def run_scheduled(self, run_immediately: bool = True) -> None:
        """
        Run scrapes on the configured cron schedule until stopped.

        Args:
            run_immediately: Scrape once before waiting for the first fire time
        """
        self.running = True
        self._stop_event.clear()
        cron_spec = self.config.scraper.cron
        logger.info(f"Scheduling scraper with cron '{cron_spec}'")

        try:
            if run_immediately:
                await self._guarded_run()

            schedule = croniter(cron_spec, datetime.now(timezone.utc))
            while self.running:
                next_fire = schedule.get_next(datetime)
                delay = max(0.0, (next_fire - datetime.now(timezone.utc)).total_seconds())
                logger.info(f"Next scrape at {next_fire.isoformat()} (in {delay:.0f}s)")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

                if self.running:
                    await self._guarded_run()

        except asyncio.CancelledError:
            logger.info("Scheduled scraper cancelled")
            raise
        finally:
            self.running = False
            logger.info(
                f"Scheduled scraper stopped after {self.stats['runs_completed']} runs, "
                f"added {self.stats['total_added']} videos"
            )

    def stop(self) -> None:
        """Stop the scheduled loop."""
        logger.info("Stopping scheduled scraper")
        self.running = False
        self._stop_event.set()

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current metrics for monitoring.

        Returns:
            Dictionary of metrics
        """
        now = time.time()
        metrics: Dict[str, Any] = dict(self.stats)
        metrics.update({
            "latest_scrape_age_sec": now - self.latest_run_time if self.latest_run_time > 0 else None,
            "latest_scrape_time": (
                datetime.fromtimestamp(self.latest_run_time, tz=timezone.utc).isoformat()
                if self.latest_run_time > 0 else None
            ),
            "known_videos": len(self.store.get_all_videos()),
            "is_running": self.running,
            "reddit": self.reddit_client.state,
        })

        if self.prometheus_exporter:
            self.prometheus_exporter.update_from_metrics_dict(metrics)

        return metrics
