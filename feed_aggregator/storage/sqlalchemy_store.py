"""SQLAlchemy-backed video store."""

import logging
from datetime import timezone
from typing import List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from feed_aggregator.collector.error_handler import DuplicateInteractionError
from feed_aggregator.models.video import Bookmark, Comment, Like, NewVideo, Video, new_id
from feed_aggregator.storage.database import session_scope
from feed_aggregator.storage.orm import BookmarkORM, CommentORM, LikeORM, VideoORM

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _to_model(model: Type[M], row) -> M:
    """Validate an ORM row into a pydantic model, restoring UTC on naive timestamps."""
    result = model.model_validate(row)
    created_at = getattr(result, "created_at", None)
    if created_at is not None and created_at.tzinfo is None:
        result.created_at = created_at.replace(tzinfo=timezone.utc)
    return result


class SQLAlchemyVideoStore:
    """Durable store for videos and interactions using SQLAlchemy ORM."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_all_videos(self) -> List[Video]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(select(VideoORM).order_by(VideoORM.created_at.desc())).all()
            return [_to_model(Video, row) for row in rows]

    def get_video(self, video_id: str) -> Optional[Video]:
        with session_scope(self.session_factory) as session:
            row = session.get(VideoORM, video_id)
            return _to_model(Video, row) if row else None

    def create_video(self, video: NewVideo) -> Video:
        stored = Video(id=new_id(), **video.model_dump())
        values = stored.model_dump()
        values["source"] = stored.source.value
        with session_scope(self.session_factory) as session:
            session.add(VideoORM(**values))
        return stored

    def search_videos(self, query: str) -> List[Video]:
        pattern = f"%{query.lower()}%"
        statement = select(VideoORM).where(
            or_(
                func.lower(VideoORM.username).like(pattern),
                func.lower(VideoORM.title).like(pattern),
                func.lower(VideoORM.description).like(pattern),
            )
        )
        with session_scope(self.session_factory) as session:
            return [_to_model(Video, row) for row in session.scalars(statement).all()]

    def _adjust(self, session, video_id: str, column, delta: int) -> None:
        if delta > 0:
            value = column + delta
        else:
            value = case((column > 0, column - 1), else_=0)
        session.execute(update(VideoORM).where(VideoORM.id == video_id).values({column.key: value}))

    def increment_share_count(self, video_id: str) -> None:
        with session_scope(self.session_factory) as session:
            self._adjust(session, video_id, VideoORM.shares_count, 1)

    def increment_view_count(self, video_id: str) -> None:
        with session_scope(self.session_factory) as session:
            self._adjust(session, video_id, VideoORM.views_count, 1)

    def create_like(self, video_id: str, user_ip: str) -> Like:
        like = Like(video_id=video_id, user_ip=user_ip)
        try:
            with session_scope(self.session_factory) as session:
                if self._exists(session, LikeORM, video_id, user_ip):
                    raise DuplicateInteractionError("Video already liked")
                session.add(LikeORM(**like.model_dump()))
                self._adjust(session, video_id, VideoORM.likes_count, 1)
        except IntegrityError as e:
            raise DuplicateInteractionError("Video already liked") from e
        return like

    def delete_like(self, video_id: str, user_ip: str) -> bool:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                delete(LikeORM).where(LikeORM.video_id == video_id, LikeORM.user_ip == user_ip)
            )
            if not result.rowcount:
                return False
            self._adjust(session, video_id, VideoORM.likes_count, -1)
            return True

    def get_user_likes(self, user_ip: str) -> List[str]:
        with session_scope(self.session_factory) as session:
            return list(session.scalars(select(LikeORM.video_id).where(LikeORM.user_ip == user_ip)).all())

    def is_video_liked(self, video_id: str, user_ip: str) -> bool:
        with session_scope(self.session_factory) as session:
            return self._exists(session, LikeORM, video_id, user_ip)

    def create_comment(self, video_id: str, user_ip: str, content: str, username: str = "anonymous") -> Comment:
        comment = Comment(video_id=video_id, user_ip=user_ip, content=content, username=username)
        with session_scope(self.session_factory) as session:
            session.add(CommentORM(**comment.model_dump()))
            self._adjust(session, video_id, VideoORM.comments_count, 1)
        return comment

    def get_video_comments(self, video_id: str) -> List[Comment]:
        statement = (
            select(CommentORM)
            .where(CommentORM.video_id == video_id)
            .order_by(CommentORM.created_at.desc())
        )
        with session_scope(self.session_factory) as session:
            return [_to_model(Comment, row) for row in session.scalars(statement).all()]

    def create_bookmark(self, video_id: str, user_ip: str) -> Bookmark:
        bookmark = Bookmark(video_id=video_id, user_ip=user_ip)
        try:
            with session_scope(self.session_factory) as session:
                if self._exists(session, BookmarkORM, video_id, user_ip):
                    raise DuplicateInteractionError("Video already bookmarked")
                session.add(BookmarkORM(**bookmark.model_dump()))
                self._adjust(session, video_id, VideoORM.bookmarks_count, 1)
        except IntegrityError as e:
            raise DuplicateInteractionError("Video already bookmarked") from e
        return bookmark

    def delete_bookmark(self, video_id: str, user_ip: str) -> bool:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                delete(BookmarkORM).where(BookmarkORM.video_id == video_id, BookmarkORM.user_ip == user_ip)
            )
            if not result.rowcount:
                return False
            self._adjust(session, video_id, VideoORM.bookmarks_count, -1)
            return True

    def get_user_bookmarks(self, user_ip: str) -> List[str]:
        with session_scope(self.session_factory) as session:
            return list(
                session.scalars(select(BookmarkORM.video_id).where(BookmarkORM.user_ip == user_ip)).all()
            )

    def is_video_bookmarked(self, video_id: str, user_ip: str) -> bool:
        with session_scope(self.session_factory) as session:
            return self._exists(session, BookmarkORM, video_id, user_ip)

    @staticmethod
    def _exists(session, table, video_id: str, user_ip: str) -> bool:
        statement = select(table.id).where(table.video_id == video_id, table.user_ip == user_ip).limit(1)
        return session.scalars(statement).first() is not None
