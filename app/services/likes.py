"""
Like counters for media and albums.

Media likes live in the KV store when one is configured (count plus a
per-visitor marker) and are mirrored to the database. Album likes treat the
database as authoritative and mirror into KV, with a per-IP rate limit.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Media, Album
from app.services.kv_store import KVStore, get_int
from app.services.rate_limiter import hash_ip, hit_fixed_window

logger = logging.getLogger(__name__)

ALBUM_LIKE_LIMIT = 10
ALBUM_LIKE_WINDOW = 60


def _decremented(column):
    """SQL expression for column - 1, floored at zero."""
    current = func.coalesce(column, 0)
    return case((current > 0, current - 1), else_=0)


def _media_count_key(media_id: str) -> str:
    return f"likes:{media_id}"


def _media_marker_key(media_id: str, ip: str) -> str:
    return f"liked:{media_id}:{ip}"


async def _db_media_likes(db: AsyncSession, media_id: str) -> int:
    result = await db.execute(select(Media.likes).where(Media.id == media_id))
    return result.scalar() or 0


async def get_likes(db: AsyncSession, kv: Optional[KVStore], media_id: str, ip: str) -> dict:
    """Current like count for a media item and whether ip has liked it."""
    if kv is None:
        return {"ok": True, "likes": await _db_media_likes(db, media_id), "liked": False}

    likes = await get_int(kv, _media_count_key(media_id))
    if likes is None:
        likes = await _db_media_likes(db, media_id)
    liked = await kv.get(_media_marker_key(media_id, ip)) is not None
    return {"ok": True, "likes": likes, "liked": liked}


async def toggle_like(
    db: AsyncSession,
    kv: Optional[KVStore],
    media_id: str,
    ip: str,
    action: str,
) -> dict:
    """
    Apply a like or unlike for ip on a media item.

    Args:
        db: Database session
        kv: KV store, or None to update the database directly
        media_id: Media ID
        ip: Client IP, used for the per-visitor marker
        action: "like" or "unlike"

    Returns:
        dict: {"ok", "likes", "liked"}
    """
    if action not in ("like", "unlike"):
        raise ValueError(f"Unknown like action: {action}")

    if kv is None:
        if action == "like":
            new_value = func.coalesce(Media.likes, 0) + 1
        else:
            new_value = _decremented(Media.likes)
        await db.execute(update(Media).where(Media.id == media_id).values(likes=new_value))
        await db.flush()
        return {"ok": True, "likes": await _db_media_likes(db, media_id), "liked": action == "like"}

    marker_key = _media_marker_key(media_id, ip)
    already_liked = await kv.get(marker_key) is not None
    count = await get_int(kv, _media_count_key(media_id))
    if count is None:
        count = await _db_media_likes(db, media_id)

    # Repeated like or unlike is a no-op
    if action == "like" and already_liked:
        return {"ok": True, "likes": count, "liked": True}
    if action == "unlike" and not already_liked:
        return {"ok": True, "likes": count, "liked": False}

    if action == "like":
        count += 1
        await kv.put(marker_key, datetime.now(timezone.utc).isoformat())
    else:
        count = max(0, count - 1)
        await kv.delete(marker_key)
    await kv.put(_media_count_key(media_id), str(count))

    try:
        await db.execute(update(Media).where(Media.id == media_id).values(likes=count))
        await db.flush()
    except Exception as e:
        logger.error(f"Failed to sync likes for media {media_id}: {str(e)}", exc_info=True)

    return {"ok": True, "likes": count, "liked": action == "like"}


def _album_count_key(album_id: str) -> str:
    return f"album:like:{album_id}"


async def _db_album_likes(db: AsyncSession, album_id: str) -> int:
    result = await db.execute(select(Album.likes).where(Album.id == album_id))
    return result.scalar() or 0


async def get_album_like_count(db: AsyncSession, kv: Optional[KVStore], album_id: str) -> int:
    if kv is not None:
        cached = await get_int(kv, _album_count_key(album_id))
        if cached is not None:
            return cached
    return await _db_album_likes(db, album_id)


async def _change_album_likes(
    db: AsyncSession,
    kv: Optional[KVStore],
    album_id: str,
    ip: str,
    delta: int,
) -> dict:
    if kv is not None:
        rate_key = f"album:rate:{hash_ip(ip)}"
        if not await hit_fixed_window(kv, rate_key, ALBUM_LIKE_LIMIT, ALBUM_LIKE_WINDOW):
            likes = await get_album_like_count(db, kv, album_id)
            return {"success": False, "likes": likes, "liked": delta < 0, "error": "Too many requests"}

    if delta > 0:
        new_value = func.coalesce(Album.likes, 0) + 1
    else:
        new_value = _decremented(Album.likes)
    await db.execute(update(Album).where(Album.id == album_id).values(likes=new_value))
    await db.flush()
    likes = await _db_album_likes(db, album_id)

    if kv is not None:
        await kv.put(_album_count_key(album_id), str(likes))

    return {"success": True, "likes": likes, "liked": delta > 0}


async def like_album(db: AsyncSession, kv: Optional[KVStore], album_id: str, ip: str) -> dict:
    return await _change_album_likes(db, kv, album_id, ip, 1)


async def unlike_album(db: AsyncSession, kv: Optional[KVStore], album_id: str, ip: str) -> dict:
    return await _change_album_likes(db, kv, album_id, ip, -1)
