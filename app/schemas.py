"""
Pydantic schemas for request and response data validation.
Defines data structures for API endpoints with automatic validation and serialization.
"""
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List


def _dedupe(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    seen = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


class LoginRequest(BaseModel):
    username: str
    password: str


class CategoryResponse(BaseModel):
    """Media or album category as returned by admin endpoints."""
    id: str
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    display_order: int = 0
    show_in_frontend: Optional[int] = 1
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryCreate(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    display_order: int = 0
    show_in_frontend: Optional[int] = 1

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    display_order: Optional[int] = None
    show_in_frontend: Optional[int] = None


class MediaUpdate(BaseModel):
    """
    Partial update for a media item.
    description is accepted as an alias for alt text.
    """
    title: Optional[str] = None
    alt: Optional[str] = None
    description: Optional[str] = None
    visibility: Optional[str] = None
    category_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator("visibility")
    @classmethod
    def valid_visibility(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("public", "private"):
            raise ValueError("visibility must be 'public' or 'private'")
        return v

    @field_validator("category_ids", "tags")
    @classmethod
    def unique_values(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _dedupe(v)


class AlbumCreate(BaseModel):
    title: str
    description: Optional[str] = None
    cover_media_id: Optional[str] = None
    slug: Optional[str] = None
    tags: Optional[List[str]] = None
    password: Optional[str] = None
    status: Optional[str] = "draft"
    category_ids: Optional[List[str]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be empty")
        return v.strip()

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ("draft", "published"):
            raise ValueError("status must be 'draft' or 'published'")
        return v

    @field_validator("category_ids", "tags")
    @classmethod
    def unique_values(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _dedupe(v)


class AlbumUpdate(AlbumCreate):
    """All fields optional; only fields present in the request body are applied."""
    title: Optional[str] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("title must not be empty")
        return v.strip() if v is not None else v


class AlbumMediaRequest(BaseModel):
    media_ids: List[str]

    @field_validator("media_ids")
    @classmethod
    def unique_ids(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class UnlockRequest(BaseModel):
    password: Optional[str] = ""


class CommentCreate(BaseModel):
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    author_url: Optional[str] = None
    content: Optional[str] = None
    parent_id: Optional[str] = None


class SubscribeRequest(BaseModel):
    email: Optional[str] = None


class UnsubscribeRequest(BaseModel):
    token: str


class SubscriberResponse(BaseModel):
    id: str
    email: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NewsletterRequest(BaseModel):
    """Create a draft (subject + content) or, with action="send", send draft id."""
    subject: Optional[str] = None
    content: Optional[str] = None
    type: Optional[str] = "general"
    action: Optional[str] = None
    id: Optional[str] = None


class NewsletterResponse(BaseModel):
    id: str
    subject: str
    content: str
    type: str
    status: str
    recipients_count: int
    created_at: datetime
    sent_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
