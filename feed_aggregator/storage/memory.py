"""In-memory video store."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from feed_aggregator.collector.error_handler import DuplicateInteractionError
from feed_aggregator.models.video import Bookmark, Comment, Like, NewVideo, Video, VideoSource, new_id

logger = logging.getLogger(__name__)

DEMO_VIDEOS = [
    {
        "video_url": "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4",
        "title": "Big Buck Bunny",
        "description": "A large and lovable rabbit deals with three tiny bullies, led by a flying squirrel",
        "username": "blender_studio",
        "likes_count": 12500,
        "comments_count": 342,
        "bookmarks_count": 1890,
        "shares_count": 456,
        "views_count": 125000,
        "age_days": 2,
    },
    {
        "video_url": "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/ElephantsDream.mp4",
        "title": "Elephants Dream",
        "description": "The first Blender open movie from 2006",
        "username": "orange_films",
        "likes_count": 8900,
        "comments_count": 234,
        "bookmarks_count": 1200,
        "shares_count": 289,
        "views_count": 89000,
        "age_days": 1,
    },
    {
        "video_url": "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/ForBiggerBlazes.mp4",
        "title": "For Bigger Blazes",
        "description": "HBO GO now works with Chromecast",
        "username": "google_demo",
        "likes_count": 15600,
        "comments_count": 567,
        "bookmarks_count": 2100,
        "shares_count": 678,
        "views_count": 156000,
        "age_days": 3,
    },
]


class MemoryVideoStore:
    """Dict-backed store. Returned models are copies; mutate through the store."""

    def __init__(self, seed_demo_videos: bool = False):
        self.videos: Dict[str, Video] = {}
        self.likes: Dict[str, Like] = {}
        self.comments: Dict[str, Comment] = {}
        self.bookmarks: Dict[str, Bookmark] = {}

        if seed_demo_videos:
            self._seed_demo_videos()

    def _seed_demo_videos(self) -> None:
        now = datetime.now(timezone.utc)
        for demo in DEMO_VIDEOS:
            values = dict(demo)
            age_days = values.pop("age_days")
            video = Video(
                id=new_id(),
                uploader_ip="mock",
                source=VideoSource.REDDIT,
                created_at=now - timedelta(days=age_days),
                **values,
            )
            self.videos[video.id] = video
        logger.info(f"Seeded {len(DEMO_VIDEOS)} demo videos")

    def get_all_videos(self) -> List[Video]:
        ordered = sorted(self.videos.values(), key=lambda video: video.created_at, reverse=True)
        return [video.model_copy() for video in ordered]

    def get_video(self, video_id: str) -> Optional[Video]:
        video = self.videos.get(video_id)
        return video.model_copy() if video else None

    def create_video(self, video: NewVideo) -> Video:
        stored = Video(id=new_id(), **video.model_dump())
        self.videos[stored.id] = stored
        return stored.model_copy()

    def search_videos(self, query: str) -> List[Video]:
        needle = query.lower()
        return [
            video.model_copy()
            for video in self.videos.values()
            if needle in video.username.lower()
            or needle in (video.title or "").lower()
            or needle in (video.description or "").lower()
        ]

    def _adjust(self, video_id: str, counter: str, delta: int) -> None:
        video = self.videos.get(video_id)
        if video is None:
            return
        setattr(video, counter, max(0, getattr(video, counter) + delta))

    def increment_share_count(self, video_id: str) -> None:
        self._adjust(video_id, "shares_count", 1)

    def increment_view_count(self, video_id: str) -> None:
        self._adjust(video_id, "views_count", 1)

    def _find_like(self, video_id: str, user_ip: str) -> Optional[Like]:
        return next(
            (like for like in self.likes.values() if like.video_id == video_id and like.user_ip == user_ip),
            None,
        )

    def create_like(self, video_id: str, user_ip: str) -> Like:
        if self._find_like(video_id, user_ip):
            raise DuplicateInteractionError("Video already liked")
        like = Like(video_id=video_id, user_ip=user_ip)
        self.likes[like.id] = like
        self._adjust(video_id, "likes_count", 1)
        return like

    def delete_like(self, video_id: str, user_ip: str) -> bool:
        like = self._find_like(video_id, user_ip)
        if like is None:
            return False
        del self.likes[like.id]
        self._adjust(video_id, "likes_count", -1)
        return True

    def get_user_likes(self, user_ip: str) -> List[str]:
        return [like.video_id for like in self.likes.values() if like.user_ip == user_ip]

    def is_video_liked(self, video_id: str, user_ip: str) -> bool:
        return self._find_like(video_id, user_ip) is not None

    def create_comment(self, video_id: str, user_ip: str, content: str, username: str = "anonymous") -> Comment:
        comment = Comment(video_id=video_id, user_ip=user_ip, content=content, username=username)
        self.comments[comment.id] = comment
        self._adjust(video_id, "comments_count", 1)
        return comment

    def get_video_comments(self, video_id: str) -> List[Comment]:
        comments = [comment for comment in self.comments.values() if comment.video_id == video_id]
        return sorted(comments, key=lambda comment: comment.created_at, reverse=True)

    def _find_bookmark(self, video_id: str, user_ip: str) -> Optional[Bookmark]:
        return next(
            (b for b in self.bookmarks.values() if b.video_id == video_id and b.user_ip == user_ip),
            None,
        )

    def create_bookmark(self, video_id: str, user_ip: str) -> Bookmark:
        if self._find_bookmark(video_id, user_ip):
            raise DuplicateInteractionError("Video already bookmarked")
        bookmark = Bookmark(video_id=video_id, user_ip=user_ip)
        self.bookmarks[bookmark.id] = bookmark
        self._adjust(video_id, "bookmarks_count", 1)
        return bookmark

    def delete_bookmark(self, video_id: str, user_ip: str) -> bool:
        bookmark = self._find_bookmark(video_id, user_ip)
        if bookmark is None:
            return False
        del self.bookmarks[bookmark.id]
        self._adjust(video_id, "bookmarks_count", -1)
        return True

    def get_user_bookmarks(self, user_ip: str) -> List[str]:
        return [b.video_id for b in self.bookmarks.values() if b.user_ip == user_ip]

    def is_video_bookmarked(self, video_id: str, user_ip: str) -> bool:
        return self._find_bookmark(video_id, user_ip) is not None
