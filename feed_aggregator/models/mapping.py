"""Mapping functions to convert upstream payloads to our data models."""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from feed_aggregator.collector.error_handler import DataShapeError
from feed_aggregator.feed.dedup import proxify
from feed_aggregator.models.upstream import RedditVideoRecord, RedGifsMedia
from feed_aggregator.models.video import Video, VideoSource

logger = logging.getLogger(__name__)

_PLAYABLE_SUFFIX = re.compile(r"\.(mp4|webm)$", re.IGNORECASE)
_PLACEHOLDER_THUMBNAILS = {"", "default", "self"}


def extract_video_url(post: Dict[str, Any]) -> Optional[str]:
    """
    Resolve a directly playable URL for a Reddit post.

    Direct .mp4/.webm links win, Imgur .gifv is rewritten to .mp4, and native
    Reddit video falls back to its ``fallback_url``. Anything else is None.
    """
    url = post.get("url") or ""
    video_url = ""

    if url.endswith(".mp4") or url.endswith(".webm"):
        video_url = url
    elif ".gifv" in url:
        video_url = url.replace(".gifv", ".mp4")

    if not video_url:
        secure_video = (post.get("secure_media") or {}).get("reddit_video")
        native_video = (post.get("media") or {}).get("reddit_video")
        if not (post.get("is_video") or secure_video or native_video):
            return None

        for reddit_video in (secure_video, native_video):
            if reddit_video and reddit_video.get("fallback_url"):
                video_url = reddit_video["fallback_url"]
                break

    if not video_url:
        return None

    # HTML5 players only handle mp4/webm; v.redd.it fallbacks carry a query string
    if not _PLAYABLE_SUFFIX.search(video_url) and "v.redd.it" not in video_url:
        return None

    return video_url


def extract_thumbnail(post: Dict[str, Any]) -> str:
    thumbnail = post.get("thumbnail") or ""
    if thumbnail in _PLACEHOLDER_THUMBNAILS:
        try:
            thumbnail = post["preview"]["images"][0]["source"]["url"] or ""
        except (KeyError, IndexError, TypeError):
            thumbnail = ""
    return thumbnail.replace("&amp;", "&")


def post_to_record(post: Dict[str, Any]) -> Optional[RedditVideoRecord]:
    """
    Convert a Reddit listing child's ``data`` dict to a RedditVideoRecord.

    Returns:
        The record, or None when the post has no playable video
    """
    video_url = extract_video_url(post)
    if not video_url:
        return None

    return {
        "id": str(post.get("id", "")),
        "title": post.get("title") or "",
        "author": post.get("author") or "[deleted]",
        "url": video_url,
        "thumbnail": extract_thumbnail(post),
        "score": int(post.get("score") or 0),
        "created": float(post.get("created_utc") or 0.0),
    }


def records_from_listing(payload: Any) -> Tuple[List[RedditVideoRecord], Optional[str]]:
    """
    Extract video records and the ``after`` cursor from a listing response.

    Raises:
        DataShapeError: If the payload is not a Reddit listing
    """
    try:
        listing = payload["data"]
        children = listing["children"]
    except (KeyError, TypeError) as e:
        raise DataShapeError(f"Invalid Reddit listing response: missing {e}") from e

    if not isinstance(children, list):
        raise DataShapeError("Invalid Reddit listing response: children is not a list")

    records = []
    for child in children:
        post = child.get("data") if isinstance(child, dict) else None
        if not isinstance(post, dict):
            continue
        record = post_to_record(post)
        if record and record["id"]:
            records.append(record)

    return records, listing.get("after") or None


def redgifs_item_to_media(item: Dict[str, Any]) -> RedGifsMedia:
    """Convert a RedGifs API item to our media format, preferring HD URLs."""
    urls = item.get("urls") or {}
    tags = item.get("tags") or []

    media_type = "video"
    if item.get("type") == 1 or not item.get("hasAudio"):
        media_type = "gif"

    return {
        "id": item.get("id", ""),
        "title": " ".join(tags) or f"RedGIFs {item.get('id', '')}",
        "media_type": media_type,
        "url": urls.get("hd") or urls.get("sd") or "",
        "hd_url": urls.get("hd"),
        "thumbnail_url": urls.get("poster") or urls.get("thumbnail") or urls.get("vthumbnail") or "",
        "poster_url": urls.get("poster"),
        "views": item.get("views") or 0,
        "duration": item.get("duration") or 0,
        "width": item.get("width") or 0,
        "height": item.get("height") or 0,
        "tags": tags,
        "user_name": item.get("userName"),
        "likes": item.get("likes") or 0,
        "created_at": item.get("createDate") or datetime.now(timezone.utc).isoformat(),
    }


def _parse_created(value: Any) -> datetime:
    if isinstance(value, (int, float)) and value > 0:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            logger.debug(f"Unparseable createDate {value!r}")
    return datetime.now(timezone.utc)


def reddit_record_to_video(record: RedditVideoRecord) -> Video:
    """Map a Reddit video record to a canonical video seeded with the upstream score."""
    return Video(
        id=f"reddit-{record['id']}",
        video_url=proxify(record["url"]),
        thumbnail_url=record.get("thumbnail") or None,
        title=record.get("title") or None,
        description=record.get("title") or None,
        username=record.get("author") or "reddit_user",
        uploader_ip="reddit",
        likes_count=max(0, record.get("score", 0)),
        source=VideoSource.REDDIT,
        created_at=_parse_created(record.get("created")),
    )


def redgifs_media_to_video(media: RedGifsMedia) -> Video:
    """Map a RedGifs media item to a canonical video."""
    tags = media.get("tags") or []
    return Video(
        id=f"redgifs-{media['id']}",
        video_url=proxify(media["url"]),
        thumbnail_url=media.get("thumbnail_url") or None,
        title=media.get("title") or None,
        description=", ".join(tags) or None,
        username=media.get("user_name") or "redgifs_user",
        uploader_ip="redgifs",
        likes_count=max(0, media.get("likes") or 0),
        views_count=max(0, media.get("views") or 0),
        source=VideoSource.REDGIFS,
        created_at=_parse_created(media.get("created_at")),
    )
