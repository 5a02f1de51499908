"""
RSS 2.0 feed of the latest published albums.
"""
from datetime import datetime, timezone
from email.utils import format_datetime
from html import escape
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.album_service import is_protected, list_feed_albums

logger = logging.getLogger(__name__)

router = APIRouter()

FEED_SIZE = 20
IMAGES_PER_ITEM = 5
RSS_CONTENT_TYPE = "application/rss+xml; charset=utf-8"


def _rfc822(value: Optional[datetime]) -> str:
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def _cdata(html: str) -> str:
    return "<![CDATA[" + html.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _item_description(album, images: List[dict]) -> str:
    parts = []
    if album.description:
        parts.append(f"<p>{escape(album.description)}</p>")
    if is_protected(album):
        parts.append("<p>This album is password protected.</p>")
    else:
        for image in images:
            parts.append(f'<p><img src="{escape(image["url"])}" alt="{escape(image["alt"])}" /></p>')
    return "".join(parts)


def render_feed(items: List[dict], site_url: str, title: str, description: str) -> str:
    """Build the RSS document from list_feed_albums() output."""
    site_url = site_url.rstrip("/")
    entries = []
    for item in items:
        album = item["album"]
        link = f"{site_url}/albums/{album.slug or album.id}"
        entries.append(
            f"""
    <item>
      <title>{escape(album.title)}</title>
      <link>{escape(link)}</link>
      <guid isPermaLink="false">{escape(album.id)}</guid>
      <pubDate>{_rfc822(album.created_at)}</pubDate>
      <description>{_cdata(_item_description(album, item["images"]))}</description>
    </item>"""
        )

    return f"""<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>{escape(title)}</title>
    <link>{escape(site_url)}</link>
    <description>{escape(description)}</description>
    <lastBuildDate>{_rfc822(None)}</lastBuildDate>
    <atom:link href="{escape(site_url)}/feed.xml" rel="self" type="application/rss+xml" />
{"".join(entries)}
  </channel>
</rss>"""


@router.get("/feed.xml")
async def album_feed(db: AsyncSession = Depends(get_db)):
    try:
        items = await list_feed_albums(db, limit=FEED_SIZE, images_per_album=IMAGES_PER_ITEM)
        xml = render_feed(items, settings.SITE_URL, settings.SITE_TITLE, settings.SITE_DESCRIPTION)
        return Response(content=xml, media_type=RSS_CONTENT_TYPE)
    except Exception as e:
        logger.error(f"Error building RSS feed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Failed to build feed"}
        )
