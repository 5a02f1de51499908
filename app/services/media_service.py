"""
Media queries and the upload pipeline.

Upload: hash -> duplicate check -> EXIF -> store object -> reverse geocode -> insert row.
"""
import hashlib
import logging
import math
import re
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, delete, update, func, or_, and_, true
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Media,
    MediaTag,
    MediaCategory,
    MediaCategoryLink,
    Album,
    AlbumMedia,
    new_id,
)
from app.schemas import MediaUpdate
from app.services import storage
from app.services.category_service import get_category_by_slug
from app.services.geocoding import reverse_geocode
from app.utils.exif import extract_image_metadata
from app.utils.media_urls import resolve_media_urls

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class DuplicateMediaError(Exception):
    """Raised when an uploaded file's hash matches existing media."""

    def __init__(self, existing: Media):
        super().__init__(f"Duplicate of media {existing.id}")
        self.existing = existing


def clamp_page(page: Optional[int], page_size: Optional[int], default_size: int = 20):
    page = max(1, int(page or 1))
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size or default_size)))
    return page, page_size


def public_visibility_clause():
    return or_(Media.visibility == "public", Media.visibility.is_(None))


def serialize_media(
    media: Media,
    tags: Optional[List[str]] = None,
    categories: Optional[List[dict]] = None,
    liked: bool = False,
) -> dict:
    urls = resolve_media_urls(media.url, media.url_thumb, media.url_medium, media.url_large)
    categories = categories or []
    return {
        "id": media.id,
        "provider": media.provider,
        "url": media.url,
        **urls,
        "filename": media.filename or "",
        "title": media.title,
        "alt": media.alt or media.filename or "",
        "mime_type": media.mime,
        "size": media.size or 0,
        "width": media.width,
        "height": media.height,
        "exif_json": media.exif_json,
        "camera_make": media.camera_make,
        "camera_model": media.camera_model,
        "lens_model": media.lens_model,
        "aperture": media.aperture,
        "shutter_speed": media.shutter_speed,
        "iso": media.iso,
        "focal_length": media.focal_length,
        "datetime_original": media.datetime_original,
        "gps_lat": media.gps_lat,
        "gps_lon": media.gps_lon,
        "location_name": media.location_name,
        "visibility": media.visibility or "public",
        "tags": tags or [],
        "categories": categories,
        "category_ids": [c["id"] for c in categories],
        "likes": media.likes or 0,
        "view_count": media.view_count or 0,
        "liked": liked,
        "created_at": media.created_at.isoformat() if media.created_at else None,
        "updated_at": media.updated_at.isoformat() if media.updated_at else None,
    }


async def load_tags_and_categories(db: AsyncSession, media_ids: List[str]):
    """Tag lists and category summaries keyed by media id."""
    tags: Dict[str, List[str]] = defaultdict(list)
    categories: Dict[str, List[dict]] = defaultdict(list)
    if not media_ids:
        return tags, categories

    tag_rows = await db.execute(
        select(MediaTag.media_id, MediaTag.tag)
        .where(MediaTag.media_id.in_(media_ids))
        .order_by(MediaTag.tag)
    )
    for media_id, tag in tag_rows.all():
        tags[media_id].append(tag)

    category_rows = await db.execute(
        select(MediaCategoryLink.media_id, MediaCategory.id, MediaCategory.name, MediaCategory.slug)
        .join(MediaCategory, MediaCategory.id == MediaCategoryLink.category_id)
        .where(MediaCategoryLink.media_id.in_(media_ids))
        .order_by(MediaCategory.display_order, MediaCategory.name)
    )
    for media_id, category_id, name, slug in category_rows.all():
        categories[media_id].append({"id": category_id, "name": name, "slug": slug or category_id})

    return tags, categories


async def _serialize_many(db: AsyncSession, rows: List[Media], liked_ids=()) -> List[dict]:
    tags, categories = await load_tags_and_categories(db, [m.id for m in rows])
    return [
        serialize_media(m, tags.get(m.id), categories.get(m.id), liked=m.id in liked_ids)
        for m in rows
    ]


def _search_clause(q: str):
    pattern = f"%{q.strip()}%"
    return or_(
        Media.filename.ilike(pattern),
        Media.title.ilike(pattern),
        Media.location_name.ilike(pattern),
    )


def _orientation_clause(orientation: Optional[str]):
    if orientation == "landscape":
        return Media.width > Media.height
    if orientation == "portrait":
        return Media.height > Media.width
    if orientation == "square":
        return and_(Media.width.is_not(None), Media.width == Media.height)
    return None


def _order_by(sort: Optional[str]):
    if sort == "likes":
        return [Media.likes.desc(), Media.created_at.desc()]
    if sort == "views":
        return [Media.view_count.desc(), Media.created_at.desc()]
    if sort == "date_asc":
        return [Media.created_at.asc()]
    if sort == "name":
        return [func.coalesce(Media.title, Media.filename).asc()]
    # Newest capture first; media without EXIF dates go last
    return [Media.datetime_original.is_(None), Media.datetime_original.desc(), Media.created_at.desc()]


async def _list_media(
    db: AsyncSession,
    conditions: list,
    sort: Optional[str],
    page: int,
    page_size: int,
    liked_ids=(),
) -> dict:
    where = and_(*conditions) if conditions else true()
    total = (await db.execute(select(func.count()).select_from(Media).where(where))).scalar() or 0
    result = await db.execute(
        select(Media)
        .where(where)
        .order_by(*_order_by(sort))
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    rows = list(result.scalars().all())
    return {
        "results": await _serialize_many(db, rows, liked_ids),
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }


async def _category_condition(db: AsyncSession, category: str, visible_only: bool):
    found = await get_category_by_slug(db, "media", category, visible_only=visible_only)
    if found is None:
        return None
    return Media.id.in_(
        select(MediaCategoryLink.media_id).where(MediaCategoryLink.category_id == found.id)
    )


async def list_public_media(
    db: AsyncSession,
    q: Optional[str] = None,
    orientation: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
    liked_ids=(),
) -> dict:
    """
    Public gallery listing. Only public (or unset) visibility is included.

    Returns:
        dict: results, total, page, pageSize, totalPages
    """
    page, page_size = clamp_page(page, page_size)
    conditions = [public_visibility_clause()]
    if q and q.strip():
        conditions.append(_search_clause(q))
    orientation_clause = _orientation_clause(orientation)
    if orientation_clause is not None:
        conditions.append(orientation_clause)
    if category:
        condition = await _category_condition(db, category, visible_only=True)
        if condition is None:
            return {"results": [], "total": 0, "page": page, "pageSize": page_size, "totalPages": 0}
        conditions.append(condition)
    if tag:
        conditions.append(Media.id.in_(select(MediaTag.media_id).where(MediaTag.tag == tag)))
    if sort not in ("likes", "views"):
        sort = "date"
    return await _list_media(db, conditions, sort, page, page_size, liked_ids)


async def list_admin_media(
    db: AsyncSession,
    q: Optional[str] = None,
    visibility: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
) -> dict:
    page, page_size = clamp_page(page, page_size)
    conditions = []
    if visibility == "public":
        conditions.append(public_visibility_clause())
    elif visibility == "private":
        conditions.append(Media.visibility == "private")
    if q and q.strip():
        conditions.append(_search_clause(q))
    if category:
        condition = await _category_condition(db, category, visible_only=False)
        if condition is None:
            return {"results": [], "total": 0, "page": page, "pageSize": page_size, "totalPages": 0}
        conditions.append(condition)
    if tag:
        conditions.append(Media.id.in_(select(MediaTag.media_id).where(MediaTag.tag == tag)))
    return await _list_media(db, conditions, sort, page, page_size)


async def get_media(db: AsyncSession, media_id: str, public_only: bool = False) -> Optional[Media]:
    stmt = select(Media).where(Media.id == media_id)
    if public_only:
        stmt = stmt.where(public_visibility_clause())
    result = await db.execute(stmt)
    return result.scalars().first()


async def get_media_detail(db: AsyncSession, media_id: str, public_only: bool = False, liked: bool = False) -> Optional[dict]:
    media = await get_media(db, media_id, public_only=public_only)
    if media is None:
        return None
    tags, categories = await load_tags_and_categories(db, [media.id])
    return serialize_media(media, tags.get(media.id), categories.get(media.id), liked=liked)


async def _replace_tags(db: AsyncSession, media_id: str, tags: List[str]) -> None:
    await db.execute(delete(MediaTag).where(MediaTag.media_id == media_id))
    for tag in tags:
        db.add(MediaTag(media_id=media_id, tag=tag))


async def _replace_categories(db: AsyncSession, media_id: str, category_ids: List[str]) -> None:
    await db.execute(delete(MediaCategoryLink).where(MediaCategoryLink.media_id == media_id))
    if not category_ids:
        return
    existing = await db.execute(select(MediaCategory.id).where(MediaCategory.id.in_(category_ids)))
    valid = set(existing.scalars().all())
    for category_id in category_ids:
        if category_id in valid:
            db.add(MediaCategoryLink(media_id=media_id, category_id=category_id))
        else:
            logger.warning(f"Skipping unknown media category {category_id} for media {media_id}")


async def update_media(db: AsyncSession, media_id: str, data: MediaUpdate) -> Optional[dict]:
    media = await get_media(db, media_id)
    if media is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if "title" in changes:
        media.title = changes["title"]
    if "alt" in changes:
        media.alt = changes["alt"]
    elif "description" in changes:
        media.alt = changes["description"]
    if changes.get("visibility") is not None:
        media.visibility = changes["visibility"]
    if changes.get("tags") is not None:
        await _replace_tags(db, media_id, changes["tags"])
    if changes.get("category_ids") is not None:
        await _replace_categories(db, media_id, changes["category_ids"])

    media.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return await get_media_detail(db, media_id)


async def delete_media(db: AsyncSession, media_id: str) -> bool:
    """Delete a media row, its links and the stored object. Storage failures are logged."""
    media = await get_media(db, media_id)
    if media is None:
        return False

    await db.execute(delete(MediaTag).where(MediaTag.media_id == media_id))
    await db.execute(delete(MediaCategoryLink).where(MediaCategoryLink.media_id == media_id))
    album_rows = await db.execute(select(AlbumMedia.album_id).where(AlbumMedia.media_id == media_id))
    album_ids = list(album_rows.scalars().all())
    await db.execute(delete(AlbumMedia).where(AlbumMedia.media_id == media_id))
    if album_ids:
        remaining = (
            select(func.count())
            .select_from(AlbumMedia)
            .where(AlbumMedia.album_id == Album.id)
            .scalar_subquery()
        )
        await db.execute(update(Album).where(Album.id.in_(album_ids)).values(media_count=remaining))
    await db.execute(update(Album).where(Album.cover_media_id == media_id).values(cover_media_id=None))

    if media.object_key:
        try:
            await storage.delete_object(media.provider, media.object_key)
        except Exception as e:
            logger.error(f"Failed to delete stored object {media.object_key} ({media.provider}): {str(e)}")

    await db.delete(media)
    await db.flush()
    logger.info(f"Deleted media {media_id}")
    return True


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9._-]", "_", filename or "upload")


def build_object_key(filename: str, folder: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """{folder/}{YYYY}/{MM}/{uuid}-{sanitized filename}"""
    now = now or datetime.now(timezone.utc)
    prefix = f"{folder.strip('/')}/" if folder and folder.strip("/") else ""
    return f"{prefix}{now:%Y}/{now:%m}/{uuid.uuid4()}-{sanitize_filename(filename)}"


async def find_by_hash(db: AsyncSession, file_hash: str) -> Optional[Media]:
    result = await db.execute(select(Media).where(Media.file_hash == file_hash).limit(1))
    return result.scalars().first()


async def create_media_from_file(
    db: AsyncSession,
    data: bytes,
    filename: str,
    content_type: Optional[str],
    provider: Optional[str] = None,
    title: Optional[str] = None,
    alt: Optional[str] = None,
    folder: Optional[str] = None,
    category_ids: Optional[List[str]] = None,
    tags: Optional[List[str]] = None,
    visibility: Optional[str] = None,
) -> dict:
    """
    Store an uploaded image and create its media row.

    Raises:
        DuplicateMediaError: If identical content was already uploaded
        StorageError: If the provider rejects the object
    """
    file_hash = hashlib.sha256(data).hexdigest()
    existing = await find_by_hash(db, file_hash)
    if existing is not None:
        raise DuplicateMediaError(existing)

    provider = provider or storage.default_provider()
    metadata = extract_image_metadata(data)
    object_key = build_object_key(filename, folder)
    url = await storage.put_object(provider, object_key, data, content_type or "application/octet-stream")

    location_name = None
    if metadata["gps_lat"] is not None and metadata["gps_lon"] is not None:
        location_name = await reverse_geocode(metadata["gps_lat"], metadata["gps_lon"])

    media = Media(
        id=new_id(),
        provider=provider,
        object_key=object_key,
        url=url,
        filename=filename,
        mime=content_type,
        size=len(data),
        title=title or filename,
        alt=alt,
        visibility=visibility if visibility in ("public", "private") else "public",
        file_hash=file_hash,
        location_name=location_name,
        **metadata,
    )
    db.add(media)
    await db.flush()

    if tags:
        await _replace_tags(db, media.id, tags)
    if category_ids:
        await _replace_categories(db, media.id, category_ids)
    await db.flush()

    logger.info(f"Created media {media.id} from {filename} ({len(data):,} bytes, provider={provider})")
    return await get_media_detail(db, media.id)


async def list_tag_counts(db: AsyncSession) -> List[dict]:
    count = func.count().label("count")
    result = await db.execute(
        select(MediaTag.tag, count).group_by(MediaTag.tag).order_by(count.desc(), MediaTag.tag.asc())
    )
    return [{"tag": tag, "count": n} for tag, n in result.all()]


async def device_stats(db: AsyncSession) -> dict:
    """Photo counts per camera (make + model) and per lens."""
    count = func.count().label("count")
    cameras = await db.execute(
        select(Media.camera_make, Media.camera_model, count)
        .where(or_(Media.camera_make.is_not(None), Media.camera_model.is_not(None)))
        .group_by(Media.camera_make, Media.camera_model)
        .order_by(count.desc())
    )
    lenses = await db.execute(
        select(Media.lens_model, count)
        .where(Media.lens_model.is_not(None))
        .group_by(Media.lens_model)
        .order_by(count.desc())
    )
    return {
        "cameras": [{"make": make, "model": model, "count": n} for make, model, n in cameras.all()],
        "lenses": [{"lens": lens, "count": n} for lens, n in lenses.all()],
    }
