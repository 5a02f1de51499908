"""
Newsletter drafts and delivery through the Resend email API.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import Newsletter, Subscriber, new_id
from app.services.media_service import clamp_page
from app.services.subscriber_service import get_active_subscribers

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
BATCH_SIZE = 10


class NewsletterError(Exception):
    """Raised when a newsletter cannot be sent."""


async def create_newsletter(db: AsyncSession, subject: str, content: str, type: str = "general") -> Newsletter:
    newsletter = Newsletter(
        id=new_id(),
        subject=subject,
        content=content,
        type=type or "general",
        status="draft",
        recipients_count=0,
    )
    db.add(newsletter)
    await db.flush()
    logger.info(f"Created newsletter draft {newsletter.id}")
    return newsletter


async def list_newsletters(db: AsyncSession, page: Optional[int] = 1, page_size: Optional[int] = 20) -> dict:
    page, page_size = clamp_page(page, page_size)
    total = (await db.execute(select(func.count()).select_from(Newsletter))).scalar() or 0
    result = await db.execute(
        select(Newsletter).order_by(Newsletter.created_at.desc()).limit(page_size).offset((page - 1) * page_size)
    )
    return {"newsletters": list(result.scalars().all()), "total": total, "page": page, "pageSize": page_size}


def unsubscribe_url(token: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}/unsubscribe?token={token}"


def render_email_html(content: str, subscriber: Subscriber) -> str:
    """Fill {{unsubscribe_url}} and {{email}} placeholders and append the unsubscribe footer."""
    link = unsubscribe_url(subscriber.token)
    body = content.replace("{{unsubscribe_url}}", link).replace("{{email}}", subscriber.email)
    footer = (
        '<p style="font-size: 12px; color: #666; margin-top: 20px; '
        'border-top: 1px solid #eee; padding-top: 10px;">'
        "You are receiving this email because you subscribed to our updates.<br>"
        f'<a href="{link}">Unsubscribe</a>'
        "</p>"
    )
    return body + footer


async def _send_one(client: httpx.AsyncClient, newsletter: Newsletter, subscriber: Subscriber) -> bool:
    payload = {
        "from": settings.RESEND_FROM_EMAIL,
        "to": [subscriber.email],
        "subject": newsletter.subject,
        "html": render_email_html(newsletter.content, subscriber),
    }
    try:
        response = await client.post(
            RESEND_API_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
        )
        response.raise_for_status()
        return True
    except httpx.HTTPError as e:
        logger.error(f"Failed to send newsletter {newsletter.id} to subscriber {subscriber.id}: {str(e)}")
        return False


async def send_newsletter(
    db: AsyncSession,
    newsletter_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """
    Send a newsletter to every active subscriber, ten at a time.

    Returns:
        int: Number of emails accepted by the provider

    Raises:
        NewsletterError: If the newsletter is missing or already sent, email is
            not configured, or every send failed
    """
    newsletter = await db.get(Newsletter, newsletter_id)
    if newsletter is None or newsletter.status == "sent":
        raise NewsletterError("Newsletter not found or already sent")
    if not settings.RESEND_API_KEY:
        raise NewsletterError("RESEND_API_KEY not configured")

    subscribers = await get_active_subscribers(db)
    if not subscribers:
        return 0

    newsletter.status = "sending"
    await db.flush()

    sent = 0
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        for start in range(0, len(subscribers), BATCH_SIZE):
            batch = subscribers[start:start + BATCH_SIZE]
            results = await asyncio.gather(*(_send_one(client, newsletter, s) for s in batch))
            sent += sum(1 for ok in results if ok)

    newsletter.status = "sent" if sent else "failed"
    newsletter.recipients_count = sent
    newsletter.sent_at = datetime.now(timezone.utc) if sent else None
    await db.flush()

    logger.info(f"Newsletter {newsletter_id}: sent {sent}/{len(subscribers)}")
    if sent == 0:
        raise NewsletterError("All sends failed")
    return sent
