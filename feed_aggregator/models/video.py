"""
Pydantic models for canonical videos and interaction records.

These are the shapes the feed, the scraper and the stores exchange. Attribute
names are snake_case; JSON aliases are camelCase so the route layer can serve
them unchanged.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class VideoSource(str, Enum):
    """Where a canonical video came from."""

    UPLOAD = "upload"
    REDDIT = "reddit"
    REDGIFS = "redgifs"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class NewVideo(_CamelModel):
    """Insert payload for a video; counters and timestamps are assigned by the store."""

    video_url: str
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    username: str = "anonymous"
    uploader_ip: str
    source: VideoSource = VideoSource.UPLOAD


class Video(_CamelModel):
    """The canonical video: the unit the feed and the stores operate on."""

    id: str
    video_url: str
    thumbnail_url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    username: str = "anonymous"
    uploader_ip: str
    likes_count: int = Field(default=0, ge=0)
    comments_count: int = Field(default=0, ge=0)
    bookmarks_count: int = Field(default=0, ge=0)
    shares_count: int = Field(default=0, ge=0)
    views_count: int = Field(default=0, ge=0)
    source: VideoSource = VideoSource.UPLOAD
    created_at: datetime = Field(default_factory=_utcnow)


class Like(_CamelModel):
    id: str = Field(default_factory=new_id)
    video_id: str
    user_ip: str
    created_at: datetime = Field(default_factory=_utcnow)


class Comment(_CamelModel):
    id: str = Field(default_factory=new_id)
    video_id: str
    user_ip: str
    username: str = "anonymous"
    content: str
    created_at: datetime = Field(default_factory=_utcnow)


class Bookmark(_CamelModel):
    id: str = Field(default_factory=new_id)
    video_id: str
    user_ip: str
    created_at: datetime = Field(default_factory=_utcnow)
