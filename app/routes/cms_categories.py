"""
Admin CRUD for media and album categories.
Both kinds expose the same endpoints under /admin/media/categories and /admin/albums/categories.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.database import get_db
from app.schemas import CategoryCreate, CategoryUpdate, CategoryResponse
from app.services import category_service
from app.utils.jwt_auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin categories"])

_PATHS = {"media": "/media/categories", "album": "/albums/categories"}


def _response(category) -> dict:
    return CategoryResponse.model_validate(category).model_dump(mode="json")


def _slug_conflict() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"ok": False, "error": "Slug already exists"}
    )


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"ok": False, "error": "Category not found"}
    )


async def _list(db: AsyncSession, kind: str) -> dict:
    categories = await category_service.list_categories(db, kind)
    return {"ok": True, "categories": [_response(c) for c in categories]}


async def _create(db: AsyncSession, kind: str, data: CategoryCreate) -> dict:
    try:
        category = await category_service.create_category(db, kind, data)
        await db.commit()
        await db.refresh(category)
        return {"ok": True, "data": _response(category)}
    except IntegrityError:
        await db.rollback()
        raise _slug_conflict()
    except Exception as e:
        logger.error(f"Error creating {kind} category: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to create category"}
        )


async def _update(db: AsyncSession, kind: str, category_id: str, data: CategoryUpdate) -> dict:
    try:
        category = await category_service.update_category(db, kind, category_id, data)
        if category is None:
            raise _not_found()
        await db.commit()
        await db.refresh(category)
        return {"ok": True, "data": _response(category)}
    except HTTPException:
        raise
    except IntegrityError:
        await db.rollback()
        raise _slug_conflict()
    except Exception as e:
        logger.error(f"Error updating {kind} category {category_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to update category"}
        )


async def _delete(db: AsyncSession, kind: str, category_id: str) -> dict:
    try:
        if not await category_service.delete_category(db, kind, category_id):
            raise _not_found()
        await db.commit()
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting {kind} category {category_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to delete category"}
        )


@router.get(_PATHS["media"])
async def list_media_categories(username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await _list(db, "media")


@router.post(_PATHS["media"], status_code=status.HTTP_201_CREATED)
async def create_media_category(
    data: CategoryCreate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _create(db, "media", data)


@router.put(_PATHS["media"] + "/{category_id}")
async def update_media_category(
    category_id: str,
    data: CategoryUpdate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _update(db, "media", category_id, data)


@router.delete(_PATHS["media"] + "/{category_id}")
async def delete_media_category(
    category_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _delete(db, "media", category_id)


@router.get(_PATHS["album"])
async def list_album_categories(username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await _list(db, "album")


@router.post(_PATHS["album"], status_code=status.HTTP_201_CREATED)
async def create_album_category(
    data: CategoryCreate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _create(db, "album", data)


@router.put(_PATHS["album"] + "/{category_id}")
async def update_album_category(
    category_id: str,
    data: CategoryUpdate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _update(db, "album", category_id, data)


@router.delete(_PATHS["album"] + "/{category_id}")
async def delete_album_category(
    category_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _delete(db, "album", category_id)
