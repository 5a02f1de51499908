"""
Reverse geocoding of photo GPS coordinates via Nominatim.
"""
import logging
from typing import Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

PLACE_FIELDS = ("city", "town", "village", "municipality", "county", "state")


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.4f}, {lon:.4f}"


async def reverse_geocode(
    lat: float,
    lon: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Human-readable place name for a coordinate, e.g. "Kyoto, Japan".
    Falls back to the formatted coordinate on any lookup failure.
    """
    fallback = format_coordinates(lat, lon)
    if not settings.GEOCODE_ENABLED:
        return fallback

    params = {"format": "json", "lat": lat, "lon": lon, "zoom": 10, "accept-language": "en"}
    headers = {"User-Agent": f"{settings.API_TITLE}/{settings.API_VERSION}"}
    try:
        async with httpx.AsyncClient(timeout=3.0, transport=transport) as client:
            response = await client.get(settings.GEOCODE_URL, params=params, headers=headers)
            response.raise_for_status()
            address = response.json().get("address") or {}
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Reverse geocoding failed for {fallback}: {str(e)}")
        return fallback

    place = next((address[f] for f in PLACE_FIELDS if address.get(f)), None)
    country = address.get("country")
    parts = [p for p in (place, country) if p]
    return ", ".join(parts) if parts else fallback
