"""
Album comments: creation, moderation and threading.
"""
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Comment, new_id
from app.services.media_service import clamp_page
from app.utils.text import encode_for_html, parse_comment_markdown

logger = logging.getLogger(__name__)

COMMENT_TYPE = "album"


def serialize_comment(comment: Comment, with_html: bool = True, with_private: bool = False) -> dict:
    data = {
        "id": comment.comment_id,
        "album_id": comment.comment_post_id,
        "author_name": comment.comment_author_name,
        "author_url": comment.comment_author_url or None,
        "content": comment.comment_content,
        "parent_id": comment.comment_parent or None,
        "status": comment.comment_status,
        "created_at": comment.comment_date.isoformat() if comment.comment_date else None,
    }
    if with_html:
        data["content_html"] = parse_comment_markdown(comment.comment_content)
    if with_private:
        data["author_email"] = comment.comment_author_email
        data["author_ip"] = comment.comment_author_ip
    return data


async def create_comment(
    db: AsyncSession,
    album_id: str,
    author_name: str,
    author_email: str,
    content: str,
    author_ip: str,
    author_url: Optional[str] = None,
    parent_id: Optional[str] = None,
    status: str = "pending",
) -> Comment:
    """Store a comment. Author name and URL are HTML-encoded before saving."""
    comment = Comment(
        comment_id=new_id(),
        comment_post_id=album_id,
        comment_author_name=encode_for_html(author_name),
        comment_author_email=author_email,
        comment_author_url=encode_for_html(author_url or ""),
        comment_author_ip=author_ip,
        comment_content=content,
        comment_parent=parent_id or "",
        comment_status=status,
        comment_type=COMMENT_TYPE,
    )
    db.add(comment)
    await db.flush()
    logger.info(f"New {status} comment {comment.comment_id} on album {album_id}")
    return comment


async def get_album_comments(db: AsyncSession, album_id: str, include_all: bool = False) -> List[Comment]:
    """Comments on an album, oldest first. Only approved unless include_all."""
    conditions = [Comment.comment_post_id == album_id, Comment.comment_type == COMMENT_TYPE]
    if not include_all:
        conditions.append(Comment.comment_status == "approved")
    result = await db.execute(select(Comment).where(and_(*conditions)).order_by(Comment.comment_date.asc()))
    return list(result.scalars().all())


async def count_album_comments(db: AsyncSession, album_id: str, only_approved: bool = True) -> int:
    conditions = [Comment.comment_post_id == album_id, Comment.comment_type == COMMENT_TYPE]
    if only_approved:
        conditions.append(Comment.comment_status == "approved")
    result = await db.execute(select(func.count()).select_from(Comment).where(and_(*conditions)))
    return result.scalar() or 0


async def delete_comment(db: AsyncSession, comment_id: str) -> bool:
    """Delete a comment and its direct replies."""
    await db.execute(
        delete(Comment).where(Comment.comment_parent == comment_id, Comment.comment_type == COMMENT_TYPE)
    )
    result = await db.execute(
        delete(Comment).where(Comment.comment_id == comment_id, Comment.comment_type == COMMENT_TYPE)
    )
    await db.flush()
    return (result.rowcount or 0) > 0


async def approve_comment(db: AsyncSession, comment_id: str) -> bool:
    result = await db.execute(
        update(Comment)
        .where(Comment.comment_id == comment_id, Comment.comment_type == COMMENT_TYPE)
        .values(comment_status="approved")
    )
    await db.flush()
    return (result.rowcount or 0) > 0


async def list_comments_admin(
    db: AsyncSession,
    status: Optional[str] = None,
    page: Optional[int] = 1,
    page_size: Optional[int] = 20,
) -> dict:
    page, page_size = clamp_page(page, page_size)
    conditions = [Comment.comment_type == COMMENT_TYPE]
    if status and status != "all":
        conditions.append(Comment.comment_status == status)
    where = and_(*conditions)

    total = (await db.execute(select(func.count()).select_from(Comment).where(where))).scalar() or 0
    result = await db.execute(
        select(Comment)
        .where(where)
        .order_by(Comment.comment_date.desc())
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    return {
        "results": [serialize_comment(c, with_html=False, with_private=True) for c in result.scalars().all()],
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }


def _created(comment: dict) -> datetime:
    # SQLite hands back naive values; those are UTC
    value = datetime.fromisoformat(comment["created_at"])
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def build_comment_tree(comments: List[dict]) -> List[dict]:
    """
    Nest serialized comments under their parents.

    Roots are ordered newest first; replies oldest first at every level.
    A reply whose parent is not in the list is promoted to a root.
    """
    nodes = {c["id"]: {**c, "children": []} for c in comments}
    roots = []
    for comment in comments:
        node = nodes[comment["id"]]
        parent = nodes.get(comment.get("parent_id")) if comment.get("parent_id") else None
        if parent is not None and parent is not node:
            parent["children"].append(node)
        else:
            roots.append(node)

    roots.sort(key=_created, reverse=True)

    def sort_children(items):
        for item in items:
            if item["children"]:
                item["children"].sort(key=_created)
                sort_children(item["children"])

    sort_children(roots)
    return roots
