"""
Likes, comments, bookmarks, shares and views keyed by an opaque identity.

``identity_from_request`` is the only place that looks at request headers or
addresses; everything past it works on ``Identity`` values.
"""

import logging
from dataclasses import dataclass
from typing import List, Mapping, Optional

from feed_aggregator.collector.error_handler import DuplicateInteractionError, VideoNotFoundError
from feed_aggregator.models.video import Bookmark, Comment, Like, Video
from feed_aggregator.storage.base import VideoStore

logger = logging.getLogger(__name__)

UNKNOWN_IDENTITY = "unknown"


@dataclass(frozen=True)
class Identity:
    """Cheap pseudo-identity for anonymous viewers."""

    token: str

    def __str__(self) -> str:
        return self.token


def identity_from_request(headers: Optional[Mapping[str, str]], remote_addr: Optional[str]) -> Identity:
    """
    Derive the viewer identity from a request.

    The first ``X-Forwarded-For`` hop wins, then the socket address.
    """
    forwarded = None
    for name, value in (headers or {}).items():
        if name.lower() == "x-forwarded-for":
            forwarded = value
            break

    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return Identity(first_hop)
    if remote_addr:
        return Identity(remote_addr)
    return Identity(UNKNOWN_IDENTITY)


class InteractionService:
    """Engagement operations on top of a VideoStore."""

    def __init__(self, store: VideoStore):
        self.store = store

    def get_video(self, video_id: str) -> Video:
        video = self.store.get_video(video_id)
        if video is None:
            raise VideoNotFoundError(f"Video not found: {video_id}")
        return video

    def like(self, video_id: str, identity: Identity) -> Like:
        """
        Like a video.

        Raises:
            DuplicateInteractionError: If this identity already liked it
        """
        if self.store.is_video_liked(video_id, identity.token):
            raise DuplicateInteractionError("Video already liked")
        return self.store.create_like(video_id, identity.token)

    def unlike(self, video_id: str, identity: Identity) -> bool:
        return self.store.delete_like(video_id, identity.token)

    def toggle_like(self, video_id: str, identity: Identity) -> bool:
        """Flip the like state; returns True if the video is liked afterwards."""
        if self.store.is_video_liked(video_id, identity.token):
            self.store.delete_like(video_id, identity.token)
            return False
        self.store.create_like(video_id, identity.token)
        return True

    def comment(self, video_id: str, identity: Identity, content: str, username: str = "anonymous") -> Comment:
        content = (content or "").strip()
        if not content:
            raise ValueError("Comment content must not be empty")
        return self.store.create_comment(video_id, identity.token, content, username or "anonymous")

    def comments(self, video_id: str) -> List[Comment]:
        return self.store.get_video_comments(video_id)

    def bookmark(self, video_id: str, identity: Identity) -> Bookmark:
        """
        Bookmark a video.

        Raises:
            DuplicateInteractionError: If this identity already bookmarked it
        """
        if self.store.is_video_bookmarked(video_id, identity.token):
            raise DuplicateInteractionError("Video already bookmarked")
        return self.store.create_bookmark(video_id, identity.token)

    def unbookmark(self, video_id: str, identity: Identity) -> bool:
        return self.store.delete_bookmark(video_id, identity.token)

    def share(self, video_id: str) -> None:
        self.store.increment_share_count(video_id)

    def view(self, video_id: str) -> None:
        self.store.increment_view_count(video_id)

    def liked_video_ids(self, identity: Identity) -> List[str]:
        return self.store.get_user_likes(identity.token)

    def bookmarked_video_ids(self, identity: Identity) -> List[str]:
        return self.store.get_user_bookmarks(identity.token)
