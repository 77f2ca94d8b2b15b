"""Tests for the scheduled scrape runner."""

import asyncio
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from feed_aggregator.collector.error_handler import ConfigurationError
from feed_aggregator.collector.scrape_runner import ScrapeRunner
from feed_aggregator.config import Config
from feed_aggregator.feed.dedup import proxify
from feed_aggregator.models.mapping import records_from_listing, redgifs_item_to_media
from feed_aggregator.models.video import NewVideo, VideoSource
from feed_aggregator.storage.memory import MemoryVideoStore
from feed_aggregator.tests.fakes import reddit_listing, reddit_post, redgifs_item


def reddit_records(*post_ids):
    records, _ = records_from_listing(reddit_listing([reddit_post(post_id) for post_id in post_ids]))
    return records


class TestScrapeRunner(unittest.TestCase):
    """Test cases for ScrapeRunner."""

    def setUp(self):
        self.config = Config()
        self.config.scraper.subreddits = ["funnyvideos", "videos"]
        self.config.scraper.limit_per_sub = 10
        self.store = MemoryVideoStore()

        self.reddit_client = MagicMock()
        self.reddit_client.fetch_multiple = AsyncMock(return_value=reddit_records("r1", "r2"))
        self.reddit_client.state = {"consecutive_errors": 0, "in_cooldown": False}

        self.redgifs_client = MagicMock()
        self.redgifs_client.fetch_trending = AsyncMock(
            return_value=[redgifs_item_to_media(redgifs_item("GifOne"))]
        )
        self.redgifs_client.fetch_by_tags = AsyncMock(return_value=[])

        self.runner = ScrapeRunner(self.config, self.store, self.reddit_client, self.redgifs_client)

    def test_run_once_persists_both_sources(self):
        result = asyncio.run(self.runner.run_once())

        self.assertEqual(result, {"reddit": 2, "redgifs": 1})
        self.reddit_client.fetch_multiple.assert_awaited_once_with(["funnyvideos", "videos"], 10, "hot")
        self.redgifs_client.fetch_trending.assert_awaited_once_with(40)
        self.assertEqual(len(self.store.get_all_videos()), 3)
        self.assertEqual(self.runner.stats["total_added"], 3)
        self.assertEqual(self.runner.stats["runs_with_data"], 1)

    def test_reddit_field_mapping(self):
        asyncio.run(self.runner.scrape_reddit())

        video = next(v for v in self.store.get_all_videos() if v.title == "Post r1")
        self.assertEqual(video.video_url, proxify("https://i.imgur.com/r1.mp4"))
        self.assertEqual(video.description, "Post r1")
        self.assertEqual(video.username, "someone")
        self.assertEqual(video.uploader_ip, "scraper")
        self.assertEqual(video.source, VideoSource.REDDIT)

    def test_redgifs_field_mapping(self):
        asyncio.run(self.runner.scrape_redgifs())

        video = self.store.get_all_videos()[0]
        self.assertEqual(video.video_url, proxify("https://media.redgifs.com/GifOne.mp4"))
        self.assertEqual(video.description, "Amateur, Cute")
        self.assertEqual(video.username, "creator")
        self.assertEqual(video.source, VideoSource.REDGIFS)

    def test_configured_tags_use_tag_search(self):
        self.config.scraper.redgifs_tags = ["cats", "dogs"]

        asyncio.run(self.runner.scrape_redgifs())

        self.redgifs_client.fetch_by_tags.assert_awaited_once_with(["cats", "dogs"], 40)
        self.redgifs_client.fetch_trending.assert_not_awaited()

    def test_second_run_adds_nothing(self):
        async def scenario():
            await self.runner.run_once()
            return await self.runner.run_once()

        second = asyncio.run(scenario())

        self.assertEqual(second, {"reddit": 0, "redgifs": 0})
        self.assertEqual(len(self.store.get_all_videos()), 3)
        self.assertEqual(self.runner.stats["runs_completed"], 2)
        self.assertEqual(self.runner.stats["runs_with_data"], 1)

    def test_existing_proxied_url_is_skipped(self):
        self.store.create_video(NewVideo(video_url=proxify("https://i.imgur.com/r1.mp4"), uploader_ip="scraper"))

        added = asyncio.run(self.runner.scrape_reddit())

        self.assertEqual(added, 1)

    def test_source_failure_is_isolated(self):
        self.reddit_client.fetch_multiple = AsyncMock(side_effect=RuntimeError("reddit down"))

        result = asyncio.run(self.runner.run_once())

        self.assertEqual(result, {"reddit": 0, "redgifs": 1})

    def test_configuration_error_is_isolated(self):
        self.reddit_client.fetch_multiple = AsyncMock(side_effect=ConfigurationError("no credentials"))

        result = asyncio.run(self.runner.run_once())

        self.assertEqual(result["reddit"], 0)
        self.assertEqual(result["redgifs"], 1)

    def test_exporter_updated_after_run(self):
        exporter = MagicMock()
        runner = ScrapeRunner(self.config, self.store, self.reddit_client, self.redgifs_client, exporter)

        asyncio.run(runner.run_once())

        exporter.record_videos_added.assert_any_call("reddit", 2)
        exporter.record_videos_added.assert_any_call("redgifs", 1)
        exporter.set_known_videos.assert_called_once_with(3)

    def test_get_metrics(self):
        metrics = self.runner.get_metrics()
        self.assertIsNone(metrics["latest_scrape_age_sec"])

        asyncio.run(self.runner.run_once())
        metrics = self.runner.get_metrics()

        self.assertEqual(metrics["total_added"], 3)
        self.assertEqual(metrics["known_videos"], 3)
        self.assertFalse(metrics["is_running"])
        self.assertGreaterEqual(metrics["latest_scrape_age_sec"], 0)
        self.assertEqual(metrics["reddit"], {"consecutive_errors": 0, "in_cooldown": False})

    @patch("feed_aggregator.collector.scrape_runner.croniter")
    def test_run_scheduled_fires_on_schedule(self, mock_croniter):
        mock_croniter.return_value.get_next.side_effect = (
            lambda _: datetime.now(timezone.utc) + timedelta(milliseconds=10)
        )
        calls = []

        async def fake_run_once():
            calls.append(len(calls))
            if len(calls) == 2:
                raise RuntimeError("bad run")
            if len(calls) == 3:
                self.runner.stop()
            return {"reddit": 0, "redgifs": 0}

        self.runner.run_once = fake_run_once
        asyncio.run(self.runner.run_scheduled())

        self.assertEqual(len(calls), 3)
        self.assertEqual(self.runner.stats["runs_failed"], 1)
        self.assertFalse(self.runner.running)
        mock_croniter.assert_called_once()
        self.assertEqual(mock_croniter.call_args.args[0], "0 */4 * * *")

    @patch("feed_aggregator.collector.scrape_runner.croniter")
    def test_stop_interrupts_wait(self, mock_croniter):
        mock_croniter.return_value.get_next.side_effect = (
            lambda _: datetime.now(timezone.utc) + timedelta(hours=1)
        )
        self.runner.run_once = AsyncMock()

        async def scenario():
            task = asyncio.create_task(self.runner.run_scheduled(run_immediately=False))
            await asyncio.sleep(0.05)
            self.assertTrue(self.runner.running)
            self.runner.stop()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(scenario())

        self.runner.run_once.assert_not_awaited()
        self.assertFalse(self.runner.running)


if __name__ == "__main__":
    unittest.main()
