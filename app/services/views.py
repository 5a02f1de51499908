"""
View counters for media and albums.

Media views are de-duplicated per visitor for a short window; album views are
rate limited per IP. Both keep the KV count and the database column in step.
"""
import logging
import re
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Media, Album
from app.services.kv_store import KVStore, get_int
from app.services.rate_limiter import hash_ip, hit_fixed_window

logger = logging.getLogger(__name__)

MEDIA_VIEW_DEDUP_TTL = 300
ALBUM_VIEW_LIMIT = 20
ALBUM_VIEW_WINDOW = 60

BOT_PATTERN = re.compile(
    r"bot|spider|crawler|slurp|bingpreview|facebookexternalhit|headless|curl|wget|python-requests",
    re.IGNORECASE,
)


def is_bot(user_agent: Optional[str]) -> bool:
    return bool(user_agent) and BOT_PATTERN.search(user_agent) is not None


async def _db_media_views(db: AsyncSession, media_id: str) -> int:
    result = await db.execute(select(Media.view_count).where(Media.id == media_id))
    return result.scalar() or 0


async def _increment_db_media_views(db: AsyncSession, media_id: str) -> None:
    await db.execute(
        update(Media)
        .where(Media.id == media_id)
        .values(view_count=func.coalesce(Media.view_count, 0) + 1)
    )
    await db.flush()


async def get_media_views(db: AsyncSession, kv: Optional[KVStore], media_id: str) -> int:
    if kv is not None:
        cached = await get_int(kv, f"media:view:{media_id}")
        if cached is not None:
            return cached
    return await _db_media_views(db, media_id)


async def increment_media_view(
    db: AsyncSession,
    kv: Optional[KVStore],
    media_id: str,
    ip: str,
) -> dict:
    """
    Count a view of a media item, at most once per visitor every five minutes.

    Returns:
        dict: {"views": int, "deduped": bool}
    """
    if kv is None:
        await _increment_db_media_views(db, media_id)
        return {"views": await _db_media_views(db, media_id), "deduped": False}

    count_key = f"media:view:{media_id}"
    dedup_key = f"media:view:dedup:{media_id}:{hash_ip(ip)}"

    if await kv.get(dedup_key) is not None:
        return {"views": await get_media_views(db, kv, media_id), "deduped": True}

    await kv.put(dedup_key, "1", ttl=MEDIA_VIEW_DEDUP_TTL)

    current = await get_int(kv, count_key)
    if current is None:
        current = await _db_media_views(db, media_id)
    views = current + 1
    await kv.put(count_key, str(views))
    try:
        await _increment_db_media_views(db, media_id)
    except Exception as e:
        logger.error(f"Failed to sync views for media {media_id}: {str(e)}", exc_info=True)

    return {"views": views, "deduped": False}


async def _db_album_views(db: AsyncSession, album_id: str) -> int:
    result = await db.execute(select(Album.view_count).where(Album.id == album_id))
    return result.scalar() or 0


async def get_album_views(db: AsyncSession, kv: Optional[KVStore], album_id: str) -> int:
    if kv is not None:
        cached = await get_int(kv, f"album:view:{album_id}")
        if cached is not None:
            return cached
    return await _db_album_views(db, album_id)


async def increment_album_view(
    db: AsyncSession,
    kv: Optional[KVStore],
    album_id: str,
    ip: str,
) -> dict:
    """
    Count a view of an album, limited to ALBUM_VIEW_LIMIT per IP per minute.

    Returns:
        dict: {"success": bool, "views": int} plus "error" when rate limited
    """
    if kv is not None:
        rate_key = f"album:view:rate:{hash_ip(ip)}"
        if not await hit_fixed_window(kv, rate_key, ALBUM_VIEW_LIMIT, ALBUM_VIEW_WINDOW):
            return {
                "success": False,
                "views": await get_album_views(db, kv, album_id),
                "error": "Too many requests",
            }

    await db.execute(
        update(Album)
        .where(Album.id == album_id)
        .values(view_count=func.coalesce(Album.view_count, 0) + 1)
    )
    await db.flush()

    if kv is None:
        return {"success": True, "views": await _db_album_views(db, album_id)}

    count_key = f"album:view:{album_id}"
    current = await get_int(kv, count_key)
    if current is None:
        # DB already includes this view
        views = await _db_album_views(db, album_id)
    else:
        views = current + 1
    await kv.put(count_key, str(views))
    return {"success": True, "views": views}
