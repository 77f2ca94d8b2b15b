"""Tests for the mapping module."""

import unittest

from feed_aggregator.collector.error_handler import DataShapeError
from feed_aggregator.models.mapping import (
    extract_thumbnail,
    extract_video_url,
    records_from_listing,
    reddit_record_to_video,
    redgifs_item_to_media,
    redgifs_media_to_video,
)
from feed_aggregator.models.video import VideoSource
from feed_aggregator.tests.fakes import reddit_listing, reddit_post, redgifs_item


class TestRedditMapping(unittest.TestCase):
    """Reddit post -> record -> canonical video."""

    def test_direct_and_gifv_urls(self):
        self.assertEqual(extract_video_url({"url": "https://i.imgur.com/a.mp4"}), "https://i.imgur.com/a.mp4")
        self.assertEqual(extract_video_url({"url": "https://x.com/a.webm"}), "https://x.com/a.webm")
        self.assertEqual(extract_video_url({"url": "https://i.imgur.com/b.gifv"}), "https://i.imgur.com/b.mp4")

    def test_native_reddit_video_fallback(self):
        post = {
            "url": "https://v.redd.it/abc123",
            "is_video": True,
            "secure_media": {"reddit_video": {"fallback_url": "https://v.redd.it/abc123/DASH_720.mp4?source=fallback"}},
        }
        self.assertEqual(extract_video_url(post), "https://v.redd.it/abc123/DASH_720.mp4?source=fallback")

    def test_non_video_posts_are_dropped(self):
        self.assertIsNone(extract_video_url({"url": "https://i.redd.it/picture.jpg"}))
        self.assertIsNone(extract_video_url({"url": "https://youtube.com/watch?v=1", "is_video": False}))
        # a fallback that is neither mp4/webm nor v.redd.it cannot be played
        post = {"is_video": True, "media": {"reddit_video": {"fallback_url": "https://cdn.example.com/stream.m3u8"}}}
        self.assertIsNone(extract_video_url(post))

    def test_thumbnail_placeholder_uses_preview(self):
        post = {
            "thumbnail": "default",
            "preview": {"images": [{"source": {"url": "https://preview.redd.it/x.jpg?a=1&amp;b=2"}}]},
        }
        self.assertEqual(extract_thumbnail(post), "https://preview.redd.it/x.jpg?a=1&b=2")
        self.assertEqual(extract_thumbnail({"thumbnail": "self"}), "")

    def test_records_from_listing(self):
        payload = reddit_listing(
            [
                reddit_post("aaa", score=5),
                reddit_post("bbb", url="https://i.redd.it/picture.jpg"),
                {"kind": "t3"},
            ],
            after="t3_bbb",
        )
        records, after = records_from_listing(payload)

        self.assertEqual([record["id"] for record in records], ["aaa"])
        self.assertEqual(records[0]["score"], 5)
        self.assertEqual(after, "t3_bbb")

    def test_records_from_listing_end_of_pages(self):
        _, after = records_from_listing(reddit_listing([], after=None))
        self.assertIsNone(after)

    def test_records_from_listing_bad_shape(self):
        with self.assertRaises(DataShapeError):
            records_from_listing({"error": 403})
        with self.assertRaises(DataShapeError):
            records_from_listing(["not", "a", "listing"])

    def test_reddit_record_to_video(self):
        records, _ = records_from_listing(reddit_listing([reddit_post("abc", score=-4)]))
        video = reddit_record_to_video(records[0])

        self.assertEqual(video.id, "reddit-abc")
        self.assertTrue(video.video_url.startswith("/api/proxy?url="))
        self.assertEqual(video.username, "someone")
        self.assertEqual(video.uploader_ip, "reddit")
        self.assertEqual(video.likes_count, 0)
        self.assertEqual(video.comments_count, 0)
        self.assertEqual(video.source, VideoSource.REDDIT)
        self.assertEqual(video.created_at.year, 2023)


class TestRedGifsMapping(unittest.TestCase):
    """RedGifs item -> media -> canonical video."""

    def test_prefers_hd_and_poster(self):
        media = redgifs_item_to_media(redgifs_item("ThingOne"))

        self.assertEqual(media["url"], "https://media.redgifs.com/ThingOne.mp4")
        self.assertEqual(media["thumbnail_url"], "https://media.redgifs.com/ThingOne-poster.jpg")
        self.assertEqual(media["media_type"], "video")
        self.assertEqual(media["title"], "Amateur Cute")
        self.assertEqual(media["user_name"], "creator")

    def test_sd_fallback_and_gif_type(self):
        item = redgifs_item("Silent", has_audio=False, tags=[])
        del item["urls"]["hd"]
        media = redgifs_item_to_media(item)

        self.assertEqual(media["url"], "https://media.redgifs.com/Silent-mobile.mp4")
        self.assertEqual(media["media_type"], "gif")
        self.assertEqual(media["title"], "RedGIFs Silent")

    def test_redgifs_media_to_video(self):
        video = redgifs_media_to_video(redgifs_item_to_media(redgifs_item("Abc", userName=None)))

        self.assertEqual(video.id, "redgifs-Abc")
        self.assertEqual(video.description, "Amateur, Cute")
        self.assertEqual(video.username, "redgifs_user")
        self.assertEqual(video.views_count, 100)
        self.assertEqual(video.likes_count, 7)
        self.assertEqual(video.source, VideoSource.REDGIFS)


if __name__ == "__main__":
    unittest.main()
