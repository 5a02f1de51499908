"""
Derive thumbnail/medium/large URLs from a stored media URL using the
MEDIA_*_STYLE settings.

A style starting with "?" or "&" is a query-string transform (e.g. Cloudflare
Images, COS); anything else is appended to the path before the query (e.g.
UpYun "!thumb").
"""
from typing import Optional

from app.config import settings


def append_style(url: str, style: Optional[str]) -> str:
    if not style:
        return url
    style = style.strip()
    if not style:
        return url

    base, sep, query = url.partition("?")
    has_query = bool(sep)

    if style.startswith("?"):
        return f"{base}?{query}&{style[1:]}" if has_query else f"{base}{style}"
    if style.startswith("&"):
        return f"{base}?{query}{style}" if has_query else f"{base}?{style[1:]}"
    return f"{base}{style}?{query}" if has_query else f"{base}{style}"


def resolve_media_urls(
    url: str,
    url_thumb: Optional[str] = None,
    url_medium: Optional[str] = None,
    url_large: Optional[str] = None,
) -> dict:
    """
    Variant URLs for a media item. A configured style wins over the stored
    per-variant URL.
    """
    thumb_style = settings.MEDIA_THUMB_STYLE.strip()
    medium_style = settings.MEDIA_MEDIUM_STYLE.strip()
    large_style = settings.MEDIA_LARGE_STYLE.strip()
    return {
        "url_thumb": append_style(url, thumb_style) if thumb_style else url_thumb,
        "url_medium": append_style(url, medium_style) if medium_style else url_medium,
        "url_large": append_style(url, large_style) if large_style else url_large,
    }
