"""
Public album API routes: listing, access control, media, views, likes and comments.
"""
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.database import get_db
from app.models import Album
from app.schemas import UnlockRequest, CommentCreate
from app.services.kv_store import get_kv_store, KVStore
from app.services import album_service, comment_service
from app.services.category_service import list_public_album_categories
from app.services.likes import get_album_like_count, like_album, unlike_album
from app.services.views import get_album_views, increment_album_view, is_bot
from app.utils.cookies import (
    album_like_cookie,
    clear_like_cookie,
    cookie_flag,
    liked_media_ids,
    pending_comment_ids,
    remember_pending_comment,
    set_like_cookie,
)
from app.utils.jwt_auth import optional_admin, require_admin
from app.utils.rate_limit import get_client_ip, limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_AUTHOR_NAME = "Admin"
ADMIN_AUTHOR_EMAIL = "admin@local"


async def _find_album(db: AsyncSession, album_id: str, is_admin: bool) -> Album:
    """Resolve an album by slug or id. Drafts are only visible to the admin."""
    album = await album_service.resolve_album(db, album_id)
    if album is None or (not is_admin and album.status == "draft"):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"ok": False, "error": "Album not found"}
        )
    return album


async def _accessible_album(
    db: AsyncSession,
    album_id: str,
    is_admin: bool,
    authorization: Optional[str],
) -> Album:
    album = await _find_album(db, album_id, is_admin)
    if not await album_service.can_access_album(db, album, is_admin, authorization):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "ok": False,
                "error": "Password required",
                "code": "PASSWORD_REQUIRED",
                "data": {"hasPassword": True},
            }
        )
    return album


@router.get("/albums")
async def list_albums(
    q: Optional[str] = None,
    category: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize", ge=1),
    db: AsyncSession = Depends(get_db),
):
    """
    List published albums, newest first.

    Returns:
        dict: ok, data, total, page, pageSize, totalPages
    """
    try:
        data = await album_service.list_public_albums(db, q=q, category=category, page=page, page_size=page_size)
        logger.info(f"Retrieved {len(data['data'])} of {data['total']} public albums")
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing albums: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve albums"}
        )


@router.get("/albums/categories")
async def list_album_categories(db: AsyncSession = Depends(get_db)):
    try:
        return {"ok": True, "categories": await list_public_album_categories(db)}
    except Exception as e:
        logger.error(f"Error listing album categories: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve categories"}
        )


@router.get("/albums/{album_id}")
async def get_album(
    album_id: str,
    authorization: Optional[str] = Header(None),
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
):
    album = await _accessible_album(db, album_id, is_admin, authorization)
    data = await album_service.get_album_detail(db, album)
    data["comment_count"] = await comment_service.count_album_comments(db, album.id)
    return {"ok": True, "data": data}


@router.get("/albums/{album_id}/media")
async def get_album_media(
    album_id: str,
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, alias="pageSize", ge=1),
    authorization: Optional[str] = Header(None),
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
):
    album = await _accessible_album(db, album_id, is_admin, authorization)
    data = await album_service.get_album_media(
        db, album.id, page=page, page_size=page_size, liked_ids=liked_media_ids(request)
    )
    return {"ok": True, **data}


@router.post("/albums/{album_id}/unlock")
@limiter.limit(RATE_LIMITS["unlock"])
async def unlock_album(
    request: Request,
    album_id: str,
    body: UnlockRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange an album password (or a one-time code) for a Bearer access token.

    Raises:
        HTTPException: 400 if no password, 404 if the album does not exist,
            403 if the password is wrong
    """
    password = (body.password or "").strip()
    if not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "Password required"}
        )

    album = await _find_album(db, album_id, is_admin=False)
    try:
        token = await album_service.unlock_album(db, album, password)
        await db.commit()
    except Exception as e:
        logger.error(f"Error unlocking album {album_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to unlock album"}
        )

    if token is None:
        logger.warning(f"Invalid password for album {album.id} from {get_client_ip(request)}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"ok": False, "error": "Invalid password", "code": "INVALID_PASSWORD"}
        )
    return {"ok": True, "token": token}


@router.get("/albums/{album_id}/view")
async def get_album_view_count(
    album_id: str,
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    album = await _find_album(db, album_id, is_admin)
    return {"success": True, "views": await get_album_views(db, kv, album.id)}


@router.post("/albums/{album_id}/view")
async def record_album_view(
    album_id: str,
    request: Request,
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    album = await _find_album(db, album_id, is_admin)
    if is_bot(request.headers.get("user-agent")):
        return {"success": True, "views": await get_album_views(db, kv, album.id), "skipped": True}

    try:
        result = await increment_album_view(db, kv, album.id, get_client_ip(request))
        await db.commit()
    except Exception as e:
        logger.error(f"Error recording view for album {album.id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": "Failed to record view"}
        )

    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=result)
    return result


@router.get("/albums/{album_id}/like")
async def get_album_likes(
    album_id: str,
    request: Request,
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    album = await _find_album(db, album_id, is_admin)
    return {
        "success": True,
        "likes": await get_album_like_count(db, kv, album.id),
        "liked": cookie_flag(request, album_like_cookie(album.id)),
    }


async def _change_album_like(
    album_id: str,
    wants_like: bool,
    request: Request,
    is_admin: bool,
    db: AsyncSession,
    kv: Optional[KVStore],
):
    album = await _find_album(db, album_id, is_admin)
    cookie = album_like_cookie(album.id)

    if cookie_flag(request, cookie) == wants_like:
        return {"success": True, "likes": await get_album_like_count(db, kv, album.id), "liked": wants_like}

    change = like_album if wants_like else unlike_album
    try:
        result = await change(db, kv, album.id, get_client_ip(request))
        await db.commit()
    except Exception as e:
        logger.error(f"Error updating likes for album {album.id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": "Failed to update likes"}
        )

    if not result["success"]:
        return JSONResponse(status_code=status.HTTP_429_TOO_MANY_REQUESTS, content=result)

    response = JSONResponse(content=result)
    if wants_like:
        set_like_cookie(response, cookie, request)
    else:
        clear_like_cookie(response, cookie, request)
    return response


@router.post("/albums/{album_id}/like")
async def like_album_route(
    album_id: str,
    request: Request,
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    return await _change_album_like(album_id, True, request, is_admin, db, kv)


@router.delete("/albums/{album_id}/like")
async def unlike_album_route(
    album_id: str,
    request: Request,
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    return await _change_album_like(album_id, False, request, is_admin, db, kv)


@router.get("/albums/{album_id}/comments")
async def list_album_comments(
    album_id: str,
    request: Request,
    authorization: Optional[str] = Header(None),
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Comments on an album, oldest first.
    The admin sees everything; visitors see approved comments plus their own pending ones.
    """
    album = await _accessible_album(db, album_id, is_admin, authorization)
    comments = await comment_service.get_album_comments(db, album.id, include_all=True)

    if not is_admin:
        own_pending = set(pending_comment_ids(request))
        comments = [
            c for c in comments
            if c.comment_status == "approved" or c.comment_id in own_pending
        ]

    serialized = [comment_service.serialize_comment(c, with_private=is_admin) for c in comments]
    return {
        "ok": True,
        "comments": serialized,
        "tree": comment_service.build_comment_tree(serialized),
        "isAdmin": is_admin,
    }


@router.post("/albums/{album_id}/comments", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["comment"])
async def create_album_comment(
    request: Request,
    album_id: str,
    body: CommentCreate,
    authorization: Optional[str] = Header(None),
    is_admin: bool = Depends(optional_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Post a comment. Visitor comments wait for approval; the admin's are approved at once.

    Raises:
        HTTPException: 400 if name, email or content is missing
    """
    album = await _accessible_album(db, album_id, is_admin, authorization)

    author_name = (body.author_name or "").strip()
    author_email = (body.author_email or "").strip()
    content = (body.content or "").strip()

    if is_admin:
        author_name = author_name or ADMIN_AUTHOR_NAME
        author_email = author_email or ADMIN_AUTHOR_EMAIL
    elif not author_name or not author_email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "Missing required fields"}
        )
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "Missing content"}
        )

    try:
        comment = await comment_service.create_comment(
            db,
            album_id=album.id,
            author_name=author_name,
            author_email=author_email,
            content=content,
            author_ip=get_client_ip(request),
            author_url=(body.author_url or "").strip() or None,
            parent_id=body.parent_id,
            status="approved" if is_admin else "pending",
        )
        await db.commit()
    except Exception as e:
        logger.error(f"Error creating comment on album {album.id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to create comment"}
        )

    response = JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"ok": True, "data": comment_service.serialize_comment(comment)},
    )
    if comment.comment_status == "pending":
        remember_pending_comment(response, request, comment.comment_id)
    return response


@router.delete("/albums/{album_id}/comments/{comment_id}")
async def delete_album_comment(
    album_id: str,
    comment_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        deleted = await comment_service.delete_comment(db, comment_id)
        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Comment not found"}
            )
        await db.commit()
        logger.info(f"Comment {comment_id} on album {album_id} deleted by {username}")
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting comment {comment_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to delete comment"}
        )


@router.post("/albums/{album_id}/comments/{comment_id}/approve")
async def approve_album_comment(
    album_id: str,
    comment_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        approved = await comment_service.approve_comment(db, comment_id)
        if not approved:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Comment not found"}
            )
        await db.commit()
        logger.info(f"Comment {comment_id} on album {album_id} approved by {username}")
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error approving comment {comment_id}: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to approve comment"}
        )
