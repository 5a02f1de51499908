"""
SQLAlchemy models for the application.
All database models inherit from Base (declarative base).
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from app.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Media(Base):
    """
    Uploaded photo with storage location, EXIF metadata and public counters.
    """
    __tablename__ = "media"

    id = Column(String(36), primary_key=True, default=new_id)
    provider = Column(String(32), nullable=False, default="local")
    object_key = Column(String, nullable=True)
    url = Column(String, nullable=False)
    url_thumb = Column(String, nullable=True)
    url_medium = Column(String, nullable=True)
    url_large = Column(String, nullable=True)
    filename = Column(String, nullable=True)
    mime = Column(String(100), nullable=True)
    size = Column(Integer, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    title = Column(String, nullable=True)
    alt = Column(String, nullable=True)

    # EXIF
    exif_json = Column(Text, nullable=True)
    camera_make = Column(String, nullable=True)
    camera_model = Column(String, nullable=True)
    lens_model = Column(String, nullable=True)
    aperture = Column(Float, nullable=True)
    shutter_speed = Column(String, nullable=True)
    iso = Column(Integer, nullable=True)
    focal_length = Column(Float, nullable=True)
    datetime_original = Column(String, nullable=True)
    gps_lat = Column(Float, nullable=True)
    gps_lon = Column(Float, nullable=True)
    location_name = Column(String, nullable=True)

    likes = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    visibility = Column(String(16), nullable=True, default="public")
    file_hash = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)


class MediaCategory(Base):
    __tablename__ = "media_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True, unique=True)
    description = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    show_in_frontend = Column(Integer, nullable=True, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class MediaCategoryLink(Base):
    __tablename__ = "media_category_links"

    media_id = Column(String(36), ForeignKey("media.id"), primary_key=True)
    category_id = Column(String(36), ForeignKey("media_categories.id"), primary_key=True)


class MediaTag(Base):
    __tablename__ = "media_tags"

    media_id = Column(String(36), ForeignKey("media.id"), primary_key=True)
    tag = Column(String, primary_key=True, index=True)


class Album(Base):
    """
    Ordered collection of media. A non-empty password makes the album protected.
    """
    __tablename__ = "albums"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cover_media_id = Column(String(36), nullable=True)
    slug = Column(String, nullable=True, unique=True)
    password = Column(String, nullable=True)
    status = Column(String(16), nullable=True, default="draft")
    media_count = Column(Integer, nullable=False, default=0)
    view_count = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)


class AlbumTag(Base):
    __tablename__ = "album_tags"

    album_id = Column(String(36), ForeignKey("albums.id"), primary_key=True)
    tag = Column(String, primary_key=True)


class AlbumCategory(Base):
    __tablename__ = "album_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=True, unique=True)
    description = Column(String, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    show_in_frontend = Column(Integer, nullable=True, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class AlbumCategoryLink(Base):
    __tablename__ = "album_category_links"

    album_id = Column(String(36), ForeignKey("albums.id"), primary_key=True)
    category_id = Column(String(36), ForeignKey("album_categories.id"), primary_key=True)


class AlbumMedia(Base):
    __tablename__ = "album_media"

    album_id = Column(String(36), ForeignKey("albums.id"), primary_key=True)
    media_id = Column(String(36), ForeignKey("media.id"), primary_key=True)
    display_order = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class AlbumOtp(Base):
    """Access token granting one visitor entry to a protected album."""
    __tablename__ = "album_otps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    album_id = Column(String(36), ForeignKey("albums.id"), nullable=False)
    token = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_album_otps_album_token", "album_id", "token"),
    )


class Comment(Base):
    """
    Visitor comment on an album. Column names follow the WordPress-style
    comments table the gallery was migrated from.
    """
    __tablename__ = "comments"

    comment_id = Column(String(36), primary_key=True, default=new_id)
    comment_post_id = Column(String(36), nullable=False, index=True)
    comment_author_name = Column(String, nullable=False)
    comment_author_email = Column(String, nullable=False)
    comment_author_url = Column(String, nullable=True)
    comment_author_ip = Column(String, nullable=True)
    comment_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    comment_content = Column(Text, nullable=False)
    comment_parent = Column(String(36), nullable=False, default="")
    comment_likes = Column(Integer, nullable=False, default=0)
    comment_dislikes = Column(Integer, nullable=False, default=0)
    comment_status = Column(String(16), nullable=False, default="pending")
    comment_type = Column(String(16), nullable=False, default="album")


class Subscriber(Base):
    __tablename__ = "subscribers"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, nullable=False, unique=True)
    token = Column(String(36), nullable=False, unique=True, default=new_id)
    status = Column(String(16), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=True)


class Newsletter(Base):
    __tablename__ = "newsletters"

    id = Column(String(36), primary_key=True, default=new_id)
    subject = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(32), nullable=False, default="general")
    recipients_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="draft")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
