"""
Visitor cookies: like markers and the list of a visitor's own pending comments.
"""
import json
import logging
from typing import List

from fastapi import Request, Response

logger = logging.getLogger(__name__)

LIKE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365
PENDING_COMMENTS_COOKIE = "photos_pending_comments"
PENDING_COMMENTS_MAX_AGE = 60 * 60 * 24 * 30
PENDING_COMMENTS_LIMIT = 50

MEDIA_LIKE_PREFIX = "media_like_"
ALBUM_LIKE_PREFIX = "album_like_"


def media_like_cookie(media_id: str) -> str:
    return f"{MEDIA_LIKE_PREFIX}{media_id}"


def album_like_cookie(album_id: str) -> str:
    return f"{ALBUM_LIKE_PREFIX}{album_id}"


def is_secure(request: Request) -> bool:
    return request.url.scheme == "https"


def cookie_flag(request: Request, name: str) -> bool:
    return request.cookies.get(name) in ("1", "true")


def liked_media_ids(request: Request) -> set:
    """IDs of every media item the visitor holds a like cookie for."""
    return {
        name[len(MEDIA_LIKE_PREFIX):]
        for name, value in request.cookies.items()
        if name.startswith(MEDIA_LIKE_PREFIX) and value in ("1", "true")
    }


def set_like_cookie(response: Response, name: str, request: Request) -> None:
    response.set_cookie(
        key=name,
        value="1",
        max_age=LIKE_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=is_secure(request),
    )


def clear_like_cookie(response: Response, name: str, request: Request) -> None:
    response.set_cookie(
        key=name,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="lax",
        secure=is_secure(request),
    )


def pending_comment_ids(request: Request) -> List[str]:
    raw = request.cookies.get(PENDING_COMMENTS_COOKIE)
    if not raw:
        return []
    try:
        ids = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring malformed pending comments cookie")
        return []
    if not isinstance(ids, list):
        return []
    return [str(i) for i in ids if isinstance(i, str)]


def remember_pending_comment(response: Response, request: Request, comment_id: str) -> None:
    """Append a comment id to the pending list, keeping the most recent ones."""
    ids = [i for i in pending_comment_ids(request) if i != comment_id]
    ids.append(comment_id)
    response.set_cookie(
        key=PENDING_COMMENTS_COOKIE,
        value=json.dumps(ids[-PENDING_COMMENTS_LIMIT:]),
        max_age=PENDING_COMMENTS_MAX_AGE,
        path="/",
        httponly=False,
        samesite="lax",
        secure=is_secure(request),
    )
