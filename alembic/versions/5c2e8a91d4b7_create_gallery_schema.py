"""create_gallery_schema

Revision ID: 5c2e8a91d4b7
Revises:
Create Date: 2026-10-19 10:12:31.402118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c2e8a91d4b7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str = 'created_at', nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        'media',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('provider', sa.String(32), nullable=False, server_default='local'),
        sa.Column('object_key', sa.String(), nullable=True),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('url_thumb', sa.String(), nullable=True),
        sa.Column('url_medium', sa.String(), nullable=True),
        sa.Column('url_large', sa.String(), nullable=True),
        sa.Column('filename', sa.String(), nullable=True),
        sa.Column('mime', sa.String(100), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('alt', sa.String(), nullable=True),
        sa.Column('exif_json', sa.Text(), nullable=True),
        sa.Column('camera_make', sa.String(), nullable=True),
        sa.Column('camera_model', sa.String(), nullable=True),
        sa.Column('lens_model', sa.String(), nullable=True),
        sa.Column('aperture', sa.Float(), nullable=True),
        sa.Column('shutter_speed', sa.String(), nullable=True),
        sa.Column('iso', sa.Integer(), nullable=True),
        sa.Column('focal_length', sa.Float(), nullable=True),
        sa.Column('datetime_original', sa.String(), nullable=True),
        sa.Column('gps_lat', sa.Float(), nullable=True),
        sa.Column('gps_lon', sa.Float(), nullable=True),
        sa.Column('location_name', sa.String(), nullable=True),
        sa.Column('likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('visibility', sa.String(16), nullable=True, server_default='public'),
        sa.Column('file_hash', sa.String(64), nullable=True),
        _timestamp(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(op.f('ix_media_file_hash'), 'media', ['file_hash'], unique=False)

    for table in ('media_categories', 'album_categories'):
        op.create_table(
            table,
            sa.Column('id', sa.String(36), primary_key=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('slug', sa.String(), nullable=True, unique=True),
            sa.Column('description', sa.String(), nullable=True),
            sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('show_in_frontend', sa.Integer(), nullable=True, server_default='1'),
            _timestamp(),
        )

    op.create_table(
        'media_category_links',
        sa.Column('media_id', sa.String(36), sa.ForeignKey('media.id'), primary_key=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('media_categories.id'), primary_key=True),
    )
    op.create_table(
        'media_tags',
        sa.Column('media_id', sa.String(36), sa.ForeignKey('media.id'), primary_key=True),
        sa.Column('tag', sa.String(), primary_key=True),
    )
    op.create_index(op.f('ix_media_tags_tag'), 'media_tags', ['tag'], unique=False)

    op.create_table(
        'albums',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cover_media_id', sa.String(36), nullable=True),
        sa.Column('slug', sa.String(), nullable=True, unique=True),
        sa.Column('password', sa.String(), nullable=True),
        sa.Column('status', sa.String(16), nullable=True, server_default='draft'),
        sa.Column('media_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('likes', sa.Integer(), nullable=False, server_default='0'),
        _timestamp(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        'album_tags',
        sa.Column('album_id', sa.String(36), sa.ForeignKey('albums.id'), primary_key=True),
        sa.Column('tag', sa.String(), primary_key=True),
    )
    op.create_table(
        'album_category_links',
        sa.Column('album_id', sa.String(36), sa.ForeignKey('albums.id'), primary_key=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('album_categories.id'), primary_key=True),
    )
    op.create_table(
        'album_media',
        sa.Column('album_id', sa.String(36), sa.ForeignKey('albums.id'), primary_key=True),
        sa.Column('media_id', sa.String(36), sa.ForeignKey('media.id'), primary_key=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        _timestamp(),
    )
    op.create_index(op.f('ix_album_media_display_order'), 'album_media', ['display_order'], unique=False)

    op.create_table(
        'album_otps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('album_id', sa.String(36), sa.ForeignKey('albums.id'), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        _timestamp(),
    )
    op.create_index('ix_album_otps_album_token', 'album_otps', ['album_id', 'token'], unique=False)

    op.create_table(
        'comments',
        sa.Column('comment_id', sa.String(36), primary_key=True),
        sa.Column('comment_post_id', sa.String(36), nullable=False),
        sa.Column('comment_author_name', sa.String(), nullable=False),
        sa.Column('comment_author_email', sa.String(), nullable=False),
        sa.Column('comment_author_url', sa.String(), nullable=True),
        sa.Column('comment_author_ip', sa.String(), nullable=True),
        sa.Column('comment_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('comment_content', sa.Text(), nullable=False),
        sa.Column('comment_parent', sa.String(36), nullable=False, server_default=''),
        sa.Column('comment_likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comment_dislikes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('comment_status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('comment_type', sa.String(16), nullable=False, server_default='album'),
    )
    op.create_index(op.f('ix_comments_comment_post_id'), 'comments', ['comment_post_id'], unique=False)

    op.create_table(
        'subscribers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('token', sa.String(36), nullable=False, unique=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='active'),
        _timestamp(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'newsletters',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False, server_default='general'),
        sa.Column('recipients_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        _timestamp(),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table('newsletters')
    op.drop_table('subscribers')
    op.drop_index(op.f('ix_comments_comment_post_id'), table_name='comments')
    op.drop_table('comments')
    op.drop_index('ix_album_otps_album_token', table_name='album_otps')
    op.drop_table('album_otps')
    op.drop_index(op.f('ix_album_media_display_order'), table_name='album_media')
    op.drop_table('album_media')
    op.drop_table('album_category_links')
    op.drop_table('album_tags')
    op.drop_table('albums')
    op.drop_index(op.f('ix_media_tags_tag'), table_name='media_tags')
    op.drop_table('media_tags')
    op.drop_table('media_category_links')
    op.drop_table('album_categories')
    op.drop_table('media_categories')
    op.drop_index(op.f('ix_media_file_hash'), table_name='media')
    op.drop_table('media')
