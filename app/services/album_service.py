"""
Album queries, admin management and password protection.

A protected album (non-empty password) is readable by the admin, or by
visitors presenting a Bearer token that was issued for it, either by
unlocking with the password or as an admin-generated one-time code.
"""
import logging
import math
import secrets
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, delete, func, or_, and_, true
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Album,
    AlbumTag,
    AlbumCategory,
    AlbumCategoryLink,
    AlbumMedia,
    AlbumOtp,
    Media,
    new_id,
)
from app.schemas import AlbumCreate, AlbumUpdate
from app.services.category_service import get_category_by_slug
from app.services.media_service import clamp_page, load_tags_and_categories, serialize_media
from app.utils.media_urls import resolve_media_urls
from app.utils.text import slugify

logger = logging.getLogger(__name__)


def is_protected(album: Album) -> bool:
    return bool(album.password)


def published_clause():
    return or_(Album.status == "published", Album.status.is_(None))


async def resolve_album(db: AsyncSession, id_or_slug: str) -> Optional[Album]:
    """Find an album by slug first, then by id."""
    result = await db.execute(select(Album).where(Album.slug == id_or_slug).limit(1))
    album = result.scalars().first()
    if album is None:
        album = await db.get(Album, id_or_slug)
    return album


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1].strip():
        return parts[1].strip()
    return None


async def token_valid_for_album(db: AsyncSession, album_id: str, token: str) -> bool:
    result = await db.execute(
        select(AlbumOtp.id).where(AlbumOtp.album_id == album_id, AlbumOtp.token == token).limit(1)
    )
    return result.first() is not None


async def can_access_album(db: AsyncSession, album: Album, is_admin: bool, authorization: Optional[str]) -> bool:
    if not is_protected(album) or is_admin:
        return True
    token = bearer_token(authorization)
    if token is None:
        return False
    return await token_valid_for_album(db, album.id, token)


async def unlock_album(db: AsyncSession, album: Album, password: str) -> Optional[str]:
    """
    Exchange a password (or a previously issued token) for an access token.

    Returns:
        str: Access token, or None if the password is wrong
    """
    if await token_valid_for_album(db, album.id, password):
        return password

    if not album.password or not secrets.compare_digest(password.encode("utf-8"), album.password.encode("utf-8")):
        return None

    token = str(uuid.uuid4())
    db.add(AlbumOtp(album_id=album.id, token=token))
    await db.flush()
    logger.info(f"Issued access token for album {album.id}")
    return token


async def create_album_otp(db: AsyncSession, album_id: str) -> str:
    """Generate a six-digit one-time access code for an album."""
    otp = str(secrets.randbelow(900000) + 100000)
    db.add(AlbumOtp(album_id=album_id, token=otp))
    await db.flush()
    logger.info(f"Generated OTP for album {album_id}")
    return otp


async def _load_album_extras(db: AsyncSession, albums: List[Album]):
    """Covers, tags and categories for a batch of albums."""
    album_ids = [a.id for a in albums]
    cover_ids = [a.cover_media_id for a in albums if a.cover_media_id]

    covers: Dict[str, Media] = {}
    if cover_ids:
        result = await db.execute(select(Media).where(Media.id.in_(cover_ids)))
        covers = {m.id: m for m in result.scalars().all()}

    tags: Dict[str, List[str]] = defaultdict(list)
    categories: Dict[str, List[dict]] = defaultdict(list)
    if album_ids:
        tag_rows = await db.execute(
            select(AlbumTag.album_id, AlbumTag.tag).where(AlbumTag.album_id.in_(album_ids)).order_by(AlbumTag.tag)
        )
        for album_id, tag in tag_rows.all():
            tags[album_id].append(tag)

        category_rows = await db.execute(
            select(AlbumCategoryLink.album_id, AlbumCategory.id, AlbumCategory.name, AlbumCategory.slug)
            .join(AlbumCategory, AlbumCategory.id == AlbumCategoryLink.category_id)
            .where(AlbumCategoryLink.album_id.in_(album_ids))
            .order_by(AlbumCategory.display_order, AlbumCategory.name)
        )
        for album_id, category_id, name, slug in category_rows.all():
            categories[album_id].append({"id": category_id, "name": name, "slug": slug or category_id})

    return covers, tags, categories


def _cover_dict(media: Optional[Media]) -> Optional[dict]:
    if media is None:
        return None
    return {
        "id": media.id,
        "url": media.url,
        **resolve_media_urls(media.url, media.url_thumb, media.url_medium, media.url_large),
    }


def serialize_album(
    album: Album,
    cover: Optional[Media] = None,
    tags: Optional[List[str]] = None,
    categories: Optional[List[dict]] = None,
    include_password: bool = False,
) -> dict:
    categories = categories or []
    data = {
        "id": album.id,
        "title": album.title,
        "description": album.description or "",
        "cover_media_id": album.cover_media_id or "",
        "cover_media": _cover_dict(cover),
        "slug": album.slug,
        "status": album.status or "published",
        "media_count": album.media_count or 0,
        "views": album.view_count or 0,
        "likes": album.likes or 0,
        "tags": tags or [],
        "categories": categories,
        "category_ids": [c["id"] for c in categories],
        "is_protected": is_protected(album),
        "created_at": album.created_at.isoformat() if album.created_at else None,
        "updated_at": album.updated_at.isoformat() if album.updated_at else None,
    }
    if include_password:
        data["password"] = album.password or ""
    return data


async def serialize_albums(db: AsyncSession, albums: List[Album], include_password: bool = False) -> List[dict]:
    covers, tags, categories = await _load_album_extras(db, albums)
    return [
        serialize_album(
            a,
            covers.get(a.cover_media_id),
            tags.get(a.id),
            categories.get(a.id),
            include_password=include_password,
        )
        for a in albums
    ]


async def _list_albums(
    db: AsyncSession,
    conditions: list,
    page: int,
    page_size: int,
    include_password: bool = False,
) -> dict:
    where = and_(*conditions) if conditions else true()
    total = (await db.execute(select(func.count()).select_from(Album).where(where))).scalar() or 0
    result = await db.execute(
        select(Album)
        .where(where)
        .order_by(Album.created_at.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    albums = list(result.scalars().all())
    return {
        "data": await serialize_albums(db, albums, include_password=include_password),
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }


def _album_search_clause(q: str):
    pattern = f"%{q.strip()}%"
    return or_(Album.title.ilike(pattern), Album.description.ilike(pattern))


async def _album_category_condition(db: AsyncSession, category: str, visible_only: bool):
    found = await get_category_by_slug(db, "album", category, visible_only=visible_only)
    if found is None:
        return None
    return Album.id.in_(
        select(AlbumCategoryLink.album_id).where(AlbumCategoryLink.category_id == found.id)
    )


def _empty_page(page: int, page_size: int) -> dict:
    return {"data": [], "total": 0, "page": page, "pageSize": page_size, "totalPages": 0}


async def list_public_albums(
    db: AsyncSession,
    q: Optional[str] = None,
    category: Optional[str] = None,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
) -> dict:
    page, page_size = clamp_page(page, page_size)
    conditions = [published_clause()]
    if q and q.strip():
        conditions.append(_album_search_clause(q))
    if category:
        condition = await _album_category_condition(db, category, visible_only=True)
        if condition is None:
            return _empty_page(page, page_size)
        conditions.append(condition)
    return await _list_albums(db, conditions, page, page_size)


async def list_admin_albums(
    db: AsyncSession,
    include_drafts: bool = True,
    q: Optional[str] = None,
    category: Optional[str] = None,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
) -> dict:
    page, page_size = clamp_page(page, page_size)
    conditions = []
    if not include_drafts:
        conditions.append(published_clause())
    if q and q.strip():
        conditions.append(_album_search_clause(q))
    if category:
        condition = await _album_category_condition(db, category, visible_only=False)
        if condition is None:
            return _empty_page(page, page_size)
        conditions.append(condition)
    return await _list_albums(db, conditions, page, page_size, include_password=True)


async def get_album_detail(db: AsyncSession, album: Album, include_password: bool = False) -> dict:
    return (await serialize_albums(db, [album], include_password=include_password))[0]


async def get_album_media(
    db: AsyncSession,
    album_id: str,
    page: Optional[int] = 1,
    page_size: Optional[int] = 50,
    liked_ids=(),
) -> dict:
    """Album media in display order, paginated."""
    page, page_size = clamp_page(page, page_size, default_size=50)
    total = (
        await db.execute(select(func.count()).select_from(AlbumMedia).where(AlbumMedia.album_id == album_id))
    ).scalar() or 0
    result = await db.execute(
        select(Media)
        .join(AlbumMedia, AlbumMedia.media_id == Media.id)
        .where(AlbumMedia.album_id == album_id)
        .order_by(AlbumMedia.display_order.asc(), AlbumMedia.created_at.asc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    rows = list(result.scalars().all())
    tags, categories = await load_tags_and_categories(db, [m.id for m in rows])
    return {
        "media": [
            serialize_media(m, tags.get(m.id), categories.get(m.id), liked=m.id in liked_ids)
            for m in rows
        ],
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }


async def _replace_album_tags(db: AsyncSession, album_id: str, tags: List[str]) -> None:
    await db.execute(delete(AlbumTag).where(AlbumTag.album_id == album_id))
    for tag in tags:
        db.add(AlbumTag(album_id=album_id, tag=tag))


async def _replace_album_categories(db: AsyncSession, album_id: str, category_ids: List[str]) -> None:
    await db.execute(delete(AlbumCategoryLink).where(AlbumCategoryLink.album_id == album_id))
    if not category_ids:
        return
    existing = await db.execute(select(AlbumCategory.id).where(AlbumCategory.id.in_(category_ids)))
    valid = set(existing.scalars().all())
    for category_id in category_ids:
        if category_id in valid:
            db.add(AlbumCategoryLink(album_id=album_id, category_id=category_id))
        else:
            logger.warning(f"Skipping unknown album category {category_id} for album {album_id}")


async def create_album(db: AsyncSession, data: AlbumCreate) -> Album:
    album_id = new_id()
    album = Album(
        id=album_id,
        title=data.title,
        description=data.description,
        cover_media_id=data.cover_media_id or None,
        slug=(data.slug or "").strip() or slugify(data.title) or album_id,
        password=data.password or None,
        status=data.status or "draft",
        media_count=0,
        view_count=0,
        likes=0,
    )
    db.add(album)
    await db.flush()

    if data.tags:
        await _replace_album_tags(db, album_id, data.tags)
    if data.category_ids:
        await _replace_album_categories(db, album_id, data.category_ids)
    await db.flush()

    logger.info(f"Created album {album_id} ({album.slug})")
    return album


async def update_album(db: AsyncSession, album_id: str, data: AlbumUpdate) -> Optional[Album]:
    """Apply only the fields present in the request. An empty password removes protection."""
    album = await db.get(Album, album_id)
    if album is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if changes.get("title") is not None:
        album.title = changes["title"]
    if "description" in changes:
        album.description = changes["description"]
    if "cover_media_id" in changes:
        album.cover_media_id = changes["cover_media_id"] or None
    if "slug" in changes:
        album.slug = (changes["slug"] or "").strip() or slugify(album.title) or album.id
    if "password" in changes:
        album.password = changes["password"] or None
    if changes.get("status") is not None:
        album.status = changes["status"]
    if changes.get("tags") is not None:
        await _replace_album_tags(db, album_id, changes["tags"])
    if changes.get("category_ids") is not None:
        await _replace_album_categories(db, album_id, changes["category_ids"])

    album.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return album


async def delete_album(db: AsyncSession, album_id: str) -> bool:
    album = await db.get(Album, album_id)
    if album is None:
        return False
    await db.execute(delete(AlbumMedia).where(AlbumMedia.album_id == album_id))
    await db.execute(delete(AlbumTag).where(AlbumTag.album_id == album_id))
    await db.execute(delete(AlbumCategoryLink).where(AlbumCategoryLink.album_id == album_id))
    await db.execute(delete(AlbumOtp).where(AlbumOtp.album_id == album_id))
    await db.delete(album)
    await db.flush()
    logger.info(f"Deleted album {album_id}")
    return True


async def recalculate_media_count(db: AsyncSession, album_id: str) -> int:
    count = (
        await db.execute(select(func.count()).select_from(AlbumMedia).where(AlbumMedia.album_id == album_id))
    ).scalar() or 0
    album = await db.get(Album, album_id)
    if album is not None:
        album.media_count = count
        await db.flush()
    return count


async def add_media_to_album(db: AsyncSession, album_id: str, media_ids: List[str]) -> dict:
    """
    Append media to the end of an album. Media already in the album and
    unknown media IDs are skipped.

    Returns:
        dict: added (list of media IDs) and media_count
    """
    existing = await db.execute(select(AlbumMedia.media_id).where(AlbumMedia.album_id == album_id))
    existing_ids = set(existing.scalars().all())
    known = await db.execute(select(Media.id).where(Media.id.in_(media_ids)))
    known_ids = set(known.scalars().all())

    max_order = (
        await db.execute(select(func.max(AlbumMedia.display_order)).where(AlbumMedia.album_id == album_id))
    ).scalar()
    next_order = (max_order if max_order is not None else -1) + 1

    added = []
    for media_id in media_ids:
        if media_id in existing_ids or media_id not in known_ids:
            continue
        db.add(AlbumMedia(album_id=album_id, media_id=media_id, display_order=next_order))
        next_order += 1
        added.append(media_id)
    await db.flush()

    media_count = await recalculate_media_count(db, album_id)
    logger.info(f"Added {len(added)} media to album {album_id}")
    return {"added": added, "media_count": media_count}


async def remove_media_from_album(db: AsyncSession, album_id: str, media_ids: List[str]) -> int:
    if media_ids:
        await db.execute(
            delete(AlbumMedia).where(AlbumMedia.album_id == album_id, AlbumMedia.media_id.in_(media_ids))
        )
        await db.flush()
    return await recalculate_media_count(db, album_id)


async def list_feed_albums(db: AsyncSession, limit: int = 20, images_per_album: int = 5) -> List[dict]:
    """Latest published albums, each with up to images_per_album media URLs."""
    result = await db.execute(
        select(Album).where(published_clause()).order_by(Album.created_at.desc()).limit(limit)
    )
    albums = list(result.scalars().all())
    items = []
    for album in albums:
        images = []
        if not is_protected(album):
            media_rows = await db.execute(
                select(Media)
                .join(AlbumMedia, AlbumMedia.media_id == Media.id)
                .where(AlbumMedia.album_id == album.id)
                .order_by(AlbumMedia.display_order.asc())
                .limit(images_per_album)
            )
            for media in media_rows.scalars().all():
                urls = resolve_media_urls(media.url, media.url_thumb, media.url_medium, media.url_large)
                images.append({"url": urls["url_medium"] or media.url, "alt": media.alt or media.title or ""})
        items.append({"album": album, "images": images})
    return items
