"""
Admin album routes: album CRUD, album media membership and one-time access codes.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.database import get_db
from app.models import Album
from app.schemas import AlbumCreate, AlbumUpdate, AlbumMediaRequest
from app.services import album_service
from app.utils.jwt_auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/albums", tags=["Admin albums"])


def _slug_conflict() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"ok": False, "error": "Slug already exists"}
    )


async def _get_album_or_404(db: AsyncSession, album_id: str) -> Album:
    album = await db.get(Album, album_id)
    if album is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Album not found"}
        )
    return album


@router.get("")
async def list_albums(
    include_drafts: bool = Query(True, alias="includeDrafts"),
    q: Optional[str] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await album_service.list_admin_albums(
            db, include_drafts=include_drafts, q=q, category=category, page=page, page_size=page_size
        )
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing admin albums: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve albums"}
        )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_album(
    data: AlbumCreate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an album. The slug defaults to a slugified title and the status to draft.

    Raises:
        HTTPException: 409 if the slug is taken
    """
    try:
        album = await album_service.create_album(db, data)
        await db.commit()
        logger.info(f"Album {album.id} created by {username}")
        return {"ok": True, "data": await album_service.get_album_detail(db, album, include_password=True)}
    except IntegrityError:
        await db.rollback()
        raise _slug_conflict()
    except Exception as e:
        logger.error(f"Error creating album: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to create album"}
        )


@router.get("/{album_id}")
async def get_album(album_id: str, username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    album = await _get_album_or_404(db, album_id)
    return {"ok": True, "data": await album_service.get_album_detail(db, album, include_password=True)}


@router.put("/{album_id}")
async def update_album(
    album_id: str,
    data: AlbumUpdate,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        album = await album_service.update_album(db, album_id, data)
        if album is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Album not found"}
            )
        await db.commit()
        logger.info(f"Album {album_id} updated by {username}")
        return {"ok": True, "data": await album_service.get_album_detail(db, album, include_password=True)}
    except HTTPException:
        raise
    except IntegrityError:
        await db.rollback()
        raise _slug_conflict()
    except Exception as e:
        logger.error(f"Error updating album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to update album"}
        )


@router.delete("/{album_id}")
async def delete_album(album_id: str, username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    try:
        if not await album_service.delete_album(db, album_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Album not found"}
            )
        await db.commit()
        logger.info(f"Album {album_id} deleted by {username}")
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to delete album"}
        )


@router.get("/{album_id}/media")
async def list_album_media(
    album_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, alias="pageSize", ge=1),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _get_album_or_404(db, album_id)
    return {"ok": True, **await album_service.get_album_media(db, album_id, page=page, page_size=page_size)}


@router.post("/{album_id}/media")
async def add_album_media(
    album_id: str,
    body: AlbumMediaRequest,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _get_album_or_404(db, album_id)
    if not body.media_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "media_ids is required"}
        )
    try:
        result = await album_service.add_media_to_album(db, album_id, body.media_ids)
        await db.commit()
        return {"ok": True, **result}
    except Exception as e:
        logger.error(f"Error adding media to album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to add media"}
        )


@router.delete("/{album_id}/media")
async def remove_album_media(
    album_id: str,
    body: AlbumMediaRequest,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _get_album_or_404(db, album_id)
    try:
        media_count = await album_service.remove_media_from_album(db, album_id, body.media_ids)
        await db.commit()
        return {"ok": True, "media_count": media_count}
    except Exception as e:
        logger.error(f"Error removing media from album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to remove media"}
        )


@router.post("/{album_id}/otp")
async def create_album_otp(album_id: str, username: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    """Issue a six-digit code that unlocks a protected album."""
    await _get_album_or_404(db, album_id)
    try:
        otp = await album_service.create_album_otp(db, album_id)
        await db.commit()
        return {"ok": True, "otp": otp}
    except Exception as e:
        logger.error(f"Error creating OTP for album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to create OTP"}
        )
