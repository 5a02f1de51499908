"""
Client identification and coarse per-endpoint HTTP rate limits.
Uses slowapi; the stricter login lockout lives in app.services.rate_limiter.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

from app.config import settings


def get_client_ip(request: Request) -> str:
    """
    Resolve the client IP address.
    Prefers the CDN header, then the first X-Forwarded-For entry, then the socket peer.

    Args:
        request: FastAPI request object

    Returns:
        str: Client IP address
    """
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    return get_remote_address(request) or "127.0.0.1"


# Create limiter instance
limiter = Limiter(
    key_func=get_client_ip,
    default_limits=["1000/hour"],
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit configurations for specific use cases
RATE_LIMITS = {
    "login": "10/minute",
    "comment": "10/minute",
    "subscribe": "5/minute",
    "unlock": "10/minute",
    "upload": "120/hour",
}
