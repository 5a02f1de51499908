"""
Admin back-office routes: session login, storage providers, comment moderation,
subscribers and newsletters.
Everything except login/logout requires the admin session cookie.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from app.config import settings
from app.database import get_db
from app.schemas import LoginRequest, NewsletterRequest, NewsletterResponse, SubscriberResponse
from app.services.kv_store import get_kv_store, KVStore
from app.services import comment_service, newsletter_service, storage, subscriber_service
from app.services.newsletter_service import NewsletterError
from app.services.rate_limiter import (
    check_login_rate_limit,
    clear_login_rate_limit,
    record_failed_login,
)
from app.utils.auth import admin_configured, verify_admin_credentials
from app.utils.cookies import is_secure
from app.utils.jwt_auth import (
    clear_session_cookie,
    create_session_token,
    require_admin,
    set_session_cookie,
)
from app.utils.rate_limit import get_client_ip, limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/login")
@limiter.limit(RATE_LIMITS["login"])
async def login(
    request: Request,
    credentials: LoginRequest,
    kv: Optional[KVStore] = Depends(get_kv_store),
):
    """
    Exchange admin credentials for a session cookie.

    Raises:
        HTTPException: 500 if admin auth is not configured, 429 while the client
            is locked out, 401 for wrong credentials
    """
    if not admin_configured():
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Admin not configured"}
        )

    ip = get_client_ip(request)
    limit = await check_login_rate_limit(kv, ip)
    if not limit.allowed:
        logger.warning(f"Login locked out for client, retry after {limit.retry_after}s")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"ok": False, "error": "Too many login attempts", "retryAfter": limit.retry_after},
            headers={"Retry-After": str(limit.retry_after)},
        )

    if not verify_admin_credentials(credentials.username, credentials.password):
        await record_failed_login(kv, ip)
        logger.warning(f"Failed admin login for user '{credentials.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"ok": False, "error": "Invalid credentials"}
        )

    await clear_login_rate_limit(kv, ip)
    token = create_session_token(settings.SESSION_SECRET, settings.ADMIN_USER)
    response = JSONResponse(content={"ok": True, "user": settings.ADMIN_USER})
    set_session_cookie(response, token, secure=is_secure(request))
    logger.info(f"Admin '{settings.ADMIN_USER}' logged in")
    return response


@router.post("/logout")
async def logout(request: Request):
    response = JSONResponse(content={"ok": True})
    clear_session_cookie(response, secure=is_secure(request))
    return response


@router.get("/me")
async def me(username: str = Depends(require_admin)):
    return {"ok": True, "user": username}


@router.get("/providers")
async def providers(username: str = Depends(require_admin)):
    return {"ok": True, "providers": storage.list_providers(), "default": storage.default_provider()}


@router.get("/album-comments")
async def list_album_comments(
    status_filter: Optional[str] = Query("all", alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize"),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Every album comment, newest first, optionally filtered by status (all, pending, approved)."""
    try:
        data = await comment_service.list_comments_admin(db, status=status_filter, page=page, page_size=page_size)
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing album comments: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve comments"}
        )


@router.post("/album-comments/{comment_id}/approve")
async def approve_album_comment(
    comment_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        if not await comment_service.approve_comment(db, comment_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Comment not found"}
            )
        await db.commit()
        logger.info(f"Comment {comment_id} approved by {username}")
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


@router.delete("/album-comments/{comment_id}")
async def delete_album_comment(
    comment_id: str,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        if not await comment_service.delete_comment(db, comment_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Comment not found"}
            )
        await db.commit()
        logger.info(f"Comment {comment_id} deleted by {username}")
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


@router.get("/subscribers")
async def list_subscribers(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize"),
    status_filter: Optional[str] = Query(None, alias="status"),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await subscriber_service.list_subscribers(db, page=page, page_size=page_size, status=status_filter)
        data["subscribers"] = [
            SubscriberResponse.model_validate(s).model_dump(mode="json") for s in data["subscribers"]
        ]
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing subscribers: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve subscribers"}
        )


@router.get("/newsletters")
async def list_newsletters(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, alias="pageSize"),
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        data = await newsletter_service.list_newsletters(db, page=page, page_size=page_size)
        data["newsletters"] = [
            NewsletterResponse.model_validate(n).model_dump(mode="json") for n in data["newsletters"]
        ]
        return {"ok": True, **data}
    except Exception as e:
        logger.error(f"Error listing newsletters: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to retrieve newsletters"}
        )


@router.post("/newsletters")
async def create_or_send_newsletter(
    body: NewsletterRequest,
    username: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a newsletter draft, or send one with {"action": "send", "id": ...}.

    Raises:
        HTTPException: 400 for missing fields or a failed send
    """
    if body.action == "send":
        if not body.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"ok": False, "error": "Missing newsletter id"}
            )
        try:
            sent = await newsletter_service.send_newsletter(db, body.id)
            await db.commit()
            logger.info(f"Newsletter {body.id} sent to {sent} subscriber(s) by {username}")
            return {"ok": True, "sent": sent}
        except NewsletterError as e:
            # keep the failed status recorded by the send
            await db.commit()
            logger.warning(f"Newsletter {body.id} not sent: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"ok": False, "error": str(e)}
            )
        except Exception as e:
            logger.error(f"Error sending newsletter {body.id}: {str(e)}", exc_info=True)
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"ok": False, "error": "Failed to send newsletter"}
            )

    subject = (body.subject or "").strip()
    content = (body.content or "").strip()
    if not subject or not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "Subject and content are required"}
        )

    try:
        newsletter = await newsletter_service.create_newsletter(db, subject, content, body.type or "general")
        await db.commit()
        await db.refresh(newsletter)
        return {"ok": True, "data": NewsletterResponse.model_validate(newsletter).model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error creating newsletter: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to create newsletter"}
        )
