"""SQLAlchemy ORM tables for videos and interaction records."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class VideoORM(Base):
    """
    Stored canonical video.

    Counters are plain integers adjusted by the store; interaction tables
    reference ``videos.id`` without a foreign key (deleting a video does not
    cascade).
    """
    __tablename__ = "videos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, default="anonymous")
    uploader_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    likes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookmarks_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shares_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="upload")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_videos_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<VideoORM(id={self.id}, source='{self.source}', video_url='{self.video_url}')>"


class LikeORM(Base):
    __tablename__ = "likes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("video_id", "user_ip", name="uq_likes_video_id_user_ip"),
        Index("ix_likes_user_ip", "user_ip"),
    )


class CommentORM(Base):
    __tablename__ = "comments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=False, default="anonymous")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class BookmarkORM(Base):
    __tablename__ = "bookmarks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    video_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_ip: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("video_id", "user_ip", name="uq_bookmarks_video_id_user_ip"),
        Index("ix_bookmarks_user_ip", "user_ip"),
    )
