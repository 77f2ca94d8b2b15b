"""Defines the VideoStore protocol for storage backends."""

from typing import List, Optional, Protocol

from feed_aggregator.models.video import Bookmark, Comment, Like, NewVideo, Video


class VideoStore(Protocol):
    """
    A protocol that defines the interface for all video stores.

    Videos are referenced by interaction records by ID only; an interaction
    may name a video the store does not hold, in which case no counter moves.
    Counter decrements never go below zero.
    """

    def get_all_videos(self) -> List[Video]:
        """Return every stored video, newest first."""
        ...

    def get_video(self, video_id: str) -> Optional[Video]:
        ...

    def create_video(self, video: NewVideo) -> Video:
        """
        Insert a video with zeroed counters and a fresh ID and timestamp.

        Returns:
            The stored video
        """
        ...

    def search_videos(self, query: str) -> List[Video]:
        """Case-insensitive substring match on username, title and description."""
        ...

    def increment_share_count(self, video_id: str) -> None:
        ...

    def increment_view_count(self, video_id: str) -> None:
        ...

    def create_like(self, video_id: str, user_ip: str) -> Like:
        """
        Record a like and bump the video's like counter.

        Raises:
            DuplicateInteractionError: If this pair already has a like
        """
        ...

    def delete_like(self, video_id: str, user_ip: str) -> bool:
        """Remove a like; returns whether one existed."""
        ...

    def get_user_likes(self, user_ip: str) -> List[str]:
        ...

    def is_video_liked(self, video_id: str, user_ip: str) -> bool:
        ...

    def create_comment(self, video_id: str, user_ip: str, content: str, username: str = "anonymous") -> Comment:
        ...

    def get_video_comments(self, video_id: str) -> List[Comment]:
        """Return a video's comments, newest first."""
        ...

    def create_bookmark(self, video_id: str, user_ip: str) -> Bookmark:
        """
        Record a bookmark and bump the video's bookmark counter.

        Raises:
            DuplicateInteractionError: If this pair already has a bookmark
        """
        ...

    def delete_bookmark(self, video_id: str, user_ip: str) -> bool:
        ...

    def get_user_bookmarks(self, user_ip: str) -> List[str]:
        ...

    def is_video_bookmarked(self, video_id: str, user_ip: str) -> bool:
        ...
