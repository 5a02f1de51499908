"""
Public newsletter subscription routes.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.database import get_db
from app.schemas import SubscribeRequest, UnsubscribeRequest
from app.services import subscriber_service
from app.utils.rate_limit import limiter, RATE_LIMITS

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/subscribe")
async def subscription_status():
    return {"ok": True, "enabled": subscriber_service.is_subscription_enabled()}


@router.post("/subscribe")
@limiter.limit(RATE_LIMITS["subscribe"])
async def subscribe(
    request: Request,
    body: SubscribeRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Subscribe an email address to the newsletter.

    Returns:
        dict: ok, plus the unsubscribe token for a new subscriber

    Raises:
        HTTPException: 503 if email delivery is not configured, 400 for an invalid address
    """
    if not subscriber_service.is_subscription_enabled():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"ok": False, "error": "Subscription is not enabled"}
        )

    email = (body.email or "").strip().lower()
    if not email or not subscriber_service.is_valid_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"ok": False, "error": "Invalid email address"}
        )

    try:
        result = await subscriber_service.add_subscriber(db, email)
        await db.commit()
    except Exception as e:
        logger.error(f"Error adding subscriber: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to subscribe"}
        )

    if result["token"] is None:
        return {"ok": True}
    return {"ok": True, "token": result["token"]}


@router.post("/subscribe/unsubscribe")
async def unsubscribe(body: UnsubscribeRequest, db: AsyncSession = Depends(get_db)):
    try:
        found = await subscriber_service.unsubscribe(db, body.token.strip())
        if not found:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"ok": False, "error": "Subscription not found"}
            )
        await db.commit()
        return {"ok": True}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error unsubscribing: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to unsubscribe"}
        )
