"""
Category management for media and albums.
Both kinds share the same shape; each function takes the kind ("media" or "album").
"""
import logging
from typing import List, Optional

from sqlalchemy import select, delete, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Media,
    MediaCategory,
    MediaCategoryLink,
    AlbumCategory,
    AlbumCategoryLink,
    new_id,
)
from app.schemas import CategoryCreate, CategoryUpdate
from app.utils.text import slugify

logger = logging.getLogger(__name__)

_KINDS = {
    "media": (MediaCategory, MediaCategoryLink),
    "album": (AlbumCategory, AlbumCategoryLink),
}


def _models(kind: str):
    try:
        return _KINDS[kind]
    except KeyError:
        raise ValueError(f"Unknown category kind: {kind}")


def visible_clause(category_model):
    return or_(category_model.show_in_frontend == 1, category_model.show_in_frontend.is_(None))


def category_to_dict(category, count: Optional[int] = None) -> dict:
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug or category.id,
        "description": category.description,
        "display_order": category.display_order,
        "show_in_frontend": category.show_in_frontend,
    }
    if count is not None:
        data["media_count"] = count
    return data


async def list_categories(db: AsyncSession, kind: str) -> list:
    category_model, _ = _models(kind)
    result = await db.execute(
        select(category_model).order_by(category_model.display_order.asc(), category_model.name.asc())
    )
    return list(result.scalars().all())


async def get_category(db: AsyncSession, kind: str, category_id: str):
    category_model, _ = _models(kind)
    return await db.get(category_model, category_id)


async def get_category_by_slug(db: AsyncSession, kind: str, slug_or_id: str, visible_only: bool = False):
    """Resolve a category by slug first, then by id."""
    category_model, _ = _models(kind)
    conditions = [or_(category_model.slug == slug_or_id, category_model.id == slug_or_id)]
    if visible_only:
        conditions.append(visible_clause(category_model))
    result = await db.execute(
        select(category_model)
        .where(and_(*conditions))
        .order_by((category_model.slug == slug_or_id).desc())
        .limit(1)
    )
    return result.scalars().first()


async def create_category(db: AsyncSession, kind: str, data: CategoryCreate):
    category_model, _ = _models(kind)
    category_id = new_id()
    category = category_model(
        id=category_id,
        name=data.name,
        slug=(data.slug or "").strip() or slugify(data.name) or category_id,
        description=data.description,
        display_order=data.display_order,
        show_in_frontend=data.show_in_frontend,
    )
    db.add(category)
    await db.flush()
    logger.info(f"Created {kind} category {category.id} ({category.slug})")
    return category


async def update_category(db: AsyncSession, kind: str, category_id: str, data: CategoryUpdate):
    category = await get_category(db, kind, category_id)
    if category is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if "name" in changes and changes["name"] is not None:
        category.name = changes["name"].strip()
    if "slug" in changes:
        category.slug = (changes["slug"] or "").strip() or slugify(category.name) or category.id
    for field in ("description", "display_order", "show_in_frontend"):
        if field in changes:
            setattr(category, field, changes[field])

    await db.flush()
    return category


async def delete_category(db: AsyncSession, kind: str, category_id: str) -> bool:
    category_model, link_model = _models(kind)
    category = await db.get(category_model, category_id)
    if category is None:
        return False
    await db.execute(delete(link_model).where(link_model.category_id == category_id))
    await db.delete(category)
    await db.flush()
    logger.info(f"Deleted {kind} category {category_id}")
    return True


async def list_public_media_categories(db: AsyncSession) -> List[dict]:
    """Visible media categories with the number of public media in each."""
    categories = await db.execute(
        select(MediaCategory)
        .where(visible_clause(MediaCategory))
        .order_by(MediaCategory.display_order.asc(), MediaCategory.name.asc())
    )
    counts = await db.execute(
        select(MediaCategoryLink.category_id, func.count())
        .join(Media, Media.id == MediaCategoryLink.media_id)
        .where(or_(Media.visibility == "public", Media.visibility.is_(None)))
        .group_by(MediaCategoryLink.category_id)
    )
    count_map = dict(counts.all())
    return [category_to_dict(c, count_map.get(c.id, 0)) for c in categories.scalars().all()]


async def list_public_album_categories(db: AsyncSession) -> List[dict]:
    categories = await db.execute(
        select(AlbumCategory)
        .where(visible_clause(AlbumCategory))
        .order_by(AlbumCategory.display_order.asc(), AlbumCategory.name.asc())
    )
    counts = await db.execute(
        select(AlbumCategoryLink.category_id, func.count()).group_by(AlbumCategoryLink.category_id)
    )
    count_map = dict(counts.all())
    return [category_to_dict(c, count_map.get(c.id, 0)) for c in categories.scalars().all()]
