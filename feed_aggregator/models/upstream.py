"""Transient upstream shapes. These are never persisted directly."""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypedDict, TypeVar

T = TypeVar("T")


class RedditVideoRecord(TypedDict):
    """A Reddit post that resolved to a playable video URL."""

    id: str  # base36 post id without the t3_ prefix
    title: str
    author: str
    url: str  # direct playable URL, query string kept
    thumbnail: str
    score: int
    created: float  # created_utc


class RedGifsMedia(TypedDict, total=False):
    """A RedGifs item converted to our media format."""

    id: str
    title: str
    media_type: str  # "gif", "video" or "image"
    url: str
    hd_url: Optional[str]
    thumbnail_url: str
    poster_url: Optional[str]
    views: int
    duration: float
    width: int
    height: int
    tags: List[str]
    user_name: Optional[str]
    likes: int
    created_at: str


@dataclass
class Page(Generic[T]):
    """
    One page of upstream results.

    ``degraded`` is set when the page is a fallback answer (cooldown or
    stale fallback); callers should not advance pagination from it.
    """

    items: List[T] = field(default_factory=list)
    next_cursor: Optional[str] = None
    degraded: bool = False

    @classmethod
    def empty(cls) -> "Page[T]":
        return cls(items=[], next_cursor=None, degraded=False)

    def __len__(self) -> int:
        return len(self.items)
