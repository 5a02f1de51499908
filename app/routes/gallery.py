"""
Public gallery API routes: media listing, details, categories, likes and views.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.database import get_db
from app.services.kv_store import get_kv_store, KVStore
from app.services import media_service
from app.services.category_service import list_public_media_categories
from app.services.likes import get_likes, toggle_like
from app.services.views import get_media_views, increment_media_view, is_bot
from app.utils.cookies import (
    clear_like_cookie,
    cookie_flag,
    liked_media_ids,
    media_like_cookie,
    set_like_cookie,
)
from app.utils.rate_limit import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter()


async def _require_public_media(db: AsyncSession, media_id: str):
    media = await media_service.get_media(db, media_id, public_only=True)
    if media is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Not found"}
        )
    return media


@router.get("/media/list")
async def list_media(
    request: Request,
    q: Optional[str] = None,
    orientation: Optional[str] = None,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    sort: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1),
    db: AsyncSession = Depends(get_db),
):
    """
    Public media listing with search, orientation, category and tag filters.

    Returns:
        dict: ok, results, total, page, pageSize, totalPages
    """
    try:
        data = await media_service.list_public_media(
            db,
            q=q,
            orientation=orientation,
            category=category,
            tag=tag,
            sort=sort,
            page=page,
            page_size=page_size,
            liked_ids=liked_media_ids(request),
        )
        logger.info(f"Retrieved {len(data['results'])} of {data['total']} public media (page {data['page']})")
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing media: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve media"}
        )


@router.get("/media/categories")
async def list_media_categories(db: AsyncSession = Depends(get_db)):
    try:
        return {"ok": True, "categories": await list_public_media_categories(db)}
    except Exception as e:
        logger.error(f"Error listing media categories: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve categories"}
        )


@router.get("/media/{media_id}")
async def get_media(media_id: str, request: Request, db: AsyncSession = Depends(get_db)):
    data = await media_service.get_media_detail(
        db,
        media_id,
        public_only=True,
        liked=cookie_flag(request, media_like_cookie(media_id)),
    )
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Not found"}
        )
    return {"ok": True, "data": data}


@router.get("/media/{media_id}/like")
async def get_media_likes(
    media_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    result = await get_likes(db, kv, media_id, get_client_ip(request))
    return {**result, "liked": cookie_flag(request, media_like_cookie(media_id))}


async def _change_media_like(
    media_id: str,
    action: str,
    request: Request,
    db: AsyncSession,
    kv: Optional[KVStore],
):
    """
    Apply a like or unlike, keyed on the visitor's like cookie.

    A visitor whose cookie already reflects the requested state gets the
    current count back without any change.
    """
    await _require_public_media(db, media_id)
    ip = get_client_ip(request)
    cookie = media_like_cookie(media_id)
    wants_like = action == "like"

    if cookie_flag(request, cookie) == wants_like:
        result = await get_likes(db, kv, media_id, ip)
        return {**result, "liked": wants_like}

    try:
        result = await toggle_like(db, kv, media_id, ip, action)
        await db.commit()
    except Exception as e:
        logger.error(f"Error applying {action} to media {media_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to update likes"}
        )

    response = JSONResponse(content=result)
    if wants_like:
        set_like_cookie(response, cookie, request)
    else:
        clear_like_cookie(response, cookie, request)
    return response


@router.post("/media/{media_id}/like")
async def like_media(
    media_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    return await _change_media_like(media_id, "like", request, db, kv)


@router.delete("/media/{media_id}/like")
async def unlike_media(
    media_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    return await _change_media_like(media_id, "unlike", request, db, kv)


@router.get("/media/{media_id}/view")
async def get_media_view_count(
    media_id: str,
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    return {"ok": True, "views": await get_media_views(db, kv, media_id)}


@router.post("/media/{media_id}/view")
async def record_media_view(
    media_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    """Count a view. Crawlers are reported but not counted."""
    await _require_public_media(db, media_id)
    if is_bot(request.headers.get("user-agent")):
        return {"ok": True, "views": await get_media_views(db, kv, media_id), "skipped": True}

    try:
        result = await increment_media_view(db, kv, media_id, get_client_ip(request))
        await db.commit()
        return {"ok": True, **result}
    except Exception as e:
        logger.error(f"Error recording view for media {media_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to record view"}
        )
