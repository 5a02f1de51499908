"""
JWT session tokens for admin access.
The token is issued at login and carried in the httpOnly "photos_admin" cookie.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Request, Response, status
from jose import JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)

COOKIE_NAME = "photos_admin"
ALGORITHM = "HS256"


@dataclass
class SessionResult:
    ok: bool
    username: Optional[str] = None


def create_session_token(secret: str, username: str, max_age: Optional[int] = None) -> str:
    """
    Create a signed session token.

    Args:
        secret: Signing secret
        username: Admin username stored in the "username" claim
        max_age: Lifetime in seconds (defaults to SESSION_MAX_AGE)

    Returns:
        str: Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = max_age if max_age is not None else settings.SESSION_MAX_AGE
    payload = {
        "username": username,
        "iat": now,
        "exp": now + timedelta(seconds=lifetime),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def verify_session_token(secret: str, token: str) -> SessionResult:
    """Decode and validate a session token. Expired or tampered tokens are not ok."""
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Session token rejected: {str(e)}")
        return SessionResult(ok=False)

    username = payload.get("username")
    if not isinstance(username, str) or not username:
        return SessionResult(ok=False)
    return SessionResult(ok=True, username=username)


def set_session_cookie(response: Response, token: str, secure: bool) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def clear_session_cookie(response: Response, secure: bool) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def require_admin(request: Request) -> str:
    """
    FastAPI dependency for admin-only endpoints.

    Returns:
        str: Username from the session token

    Raises:
        HTTPException: 500 if SESSION_SECRET is not configured,
            401 if the session cookie is missing or invalid
    """
    if not settings.SESSION_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"ok": False, "error": "Session secret not configured"}
        )

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"ok": False, "error": "Unauthorized"}
        )

    result = verify_session_token(settings.SESSION_SECRET, token)
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"ok": False, "error": "Unauthorized"}
        )
    return result.username


def optional_admin(request: Request) -> bool:
    """FastAPI dependency: True when the request carries a valid admin session."""
    token = request.cookies.get(COOKIE_NAME)
    if not token or not settings.SESSION_SECRET:
        return False
    return verify_session_token(settings.SESSION_SECRET, token).ok
