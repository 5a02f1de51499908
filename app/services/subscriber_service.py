"""
Newsletter subscribers.
"""
import logging
import math
import re
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import Subscriber, new_id
from app.services.media_service import clamp_page

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_subscription_enabled() -> bool:
    return bool(settings.RESEND_API_KEY)


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


async def add_subscriber(db: AsyncSession, email: str) -> dict:
    """
    Subscribe an address, re-activating it if it already exists.

    Returns:
        dict: {"ok": True, "token": str} for a new subscriber,
            {"ok": True, "token": None} when re-activating
    """
    email = email.strip().lower()
    result = await db.execute(select(Subscriber).where(Subscriber.email == email))
    existing = result.scalars().first()
    if existing is not None:
        if existing.status != "active":
            existing.status = "active"
            existing.updated_at = datetime.now(timezone.utc)
            await db.flush()
            logger.info(f"Re-activated subscriber {existing.id}")
        return {"ok": True, "token": None}

    subscriber = Subscriber(id=new_id(), email=email, token=new_id(), status="active")
    db.add(subscriber)
    await db.flush()
    logger.info(f"New subscriber {subscriber.id}")
    return {"ok": True, "token": subscriber.token}


async def unsubscribe(db: AsyncSession, token: str) -> bool:
    result = await db.execute(select(Subscriber).where(Subscriber.token == token))
    subscriber = result.scalars().first()
    if subscriber is None:
        return False
    subscriber.status = "unsubscribed"
    subscriber.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info(f"Subscriber {subscriber.id} unsubscribed")
    return True


async def list_subscribers(
    db: AsyncSession,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
    status: Optional[str] = None,
) -> dict:
    page, page_size = clamp_page(page, page_size)
    stmt = select(Subscriber)
    count_stmt = select(func.count()).select_from(Subscriber)
    if status:
        stmt = stmt.where(Subscriber.status == status)
        count_stmt = count_stmt.where(Subscriber.status == status)

    total = (await db.execute(count_stmt)).scalar() or 0
    result = await db.execute(
        stmt.order_by(Subscriber.created_at.desc()).limit(page_size).offset((page - 1) * page_size)
    )
    return {
        "subscribers": list(result.scalars().all()),
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }


async def get_active_subscribers(db: AsyncSession) -> List[Subscriber]:
    result = await db.execute(
        select(Subscriber).where(Subscriber.status == "active").order_by(Subscriber.created_at.asc())
    )
    return list(result.scalars().all())
