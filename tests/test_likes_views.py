import pytest

from app.models import Album, Media
from app.services import likes, views
from app.services.likes import ALBUM_LIKE_LIMIT
from app.services.views import ALBUM_VIEW_LIMIT, is_bot


async def _media(db, **fields) -> Media:
    media = Media(url="/uploads/a.jpg", filename="a.jpg", **fields)
    db.add(media)
    await db.flush()
    return media


async def _album(db, **fields) -> Album:
    album = Album(title="Trip", status="published", **fields)
    db.add(album)
    await db.flush()
    return album


async def test_media_like_with_kv_is_idempotent_per_visitor(db, kv):
    media = await _media(db, likes=3)

    liked = await likes.toggle_like(db, kv, media.id, "1.1.1.1", "like")
    assert liked == {"ok": True, "likes": 4, "liked": True}

    again = await likes.toggle_like(db, kv, media.id, "1.1.1.1", "like")
    assert again["likes"] == 4

    other = await likes.toggle_like(db, kv, media.id, "2.2.2.2", "like")
    assert other["likes"] == 5

    state = await likes.get_likes(db, kv, media.id, "1.1.1.1")
    assert state == {"ok": True, "likes": 5, "liked": True}
    assert (await likes.get_likes(db, kv, media.id, "3.3.3.3"))["liked"] is False

    unliked = await likes.toggle_like(db, kv, media.id, "1.1.1.1", "unlike")
    assert unliked == {"ok": True, "likes": 4, "liked": False}
    assert await kv.get(f"likes:{media.id}") == "4"

    await db.refresh(media)
    assert media.likes == 4


async def test_media_like_without_kv_updates_database(db):
    media = await _media(db, likes=0)

    assert (await likes.toggle_like(db, None, media.id, "ip", "like"))["likes"] == 1
    assert (await likes.toggle_like(db, None, media.id, "ip", "unlike"))["likes"] == 0
    # never below zero
    assert (await likes.toggle_like(db, None, media.id, "ip", "unlike"))["likes"] == 0


async def test_unknown_like_action(db, kv):
    media = await _media(db)
    with pytest.raises(ValueError):
        await likes.toggle_like(db, kv, media.id, "ip", "love")


async def test_album_likes_mirror_to_kv(db, kv):
    album = await _album(db, likes=2)

    result = await likes.like_album(db, kv, album.id, "1.1.1.1")
    assert result == {"success": True, "likes": 3, "liked": True}
    assert await kv.get(f"album:like:{album.id}") == "3"
    assert await likes.get_album_like_count(db, kv, album.id) == 3

    result = await likes.unlike_album(db, kv, album.id, "1.1.1.1")
    assert result["likes"] == 2
    assert result["liked"] is False


async def test_album_likes_are_rate_limited_per_ip(db, kv):
    album = await _album(db)
    for _ in range(ALBUM_LIKE_LIMIT):
        assert (await likes.like_album(db, kv, album.id, "9.9.9.9"))["success"]

    blocked = await likes.like_album(db, kv, album.id, "9.9.9.9")
    assert blocked["success"] is False
    assert blocked["error"] == "Too many requests"
    assert blocked["likes"] == ALBUM_LIKE_LIMIT
    assert (await likes.like_album(db, kv, album.id, "8.8.8.8"))["success"]


async def test_album_likes_without_kv(db):
    album = await _album(db)
    assert (await likes.unlike_album(db, None, album.id, "ip"))["likes"] == 0
    assert (await likes.like_album(db, None, album.id, "ip"))["likes"] == 1
    assert await likes.get_album_like_count(db, None, album.id) == 1


async def test_media_views_are_deduplicated_per_visitor(db, kv):
    media = await _media(db, view_count=10)

    first = await views.increment_media_view(db, kv, media.id, "1.1.1.1")
    assert first == {"views": 11, "deduped": False}

    repeat = await views.increment_media_view(db, kv, media.id, "1.1.1.1")
    assert repeat == {"views": 11, "deduped": True}

    other = await views.increment_media_view(db, kv, media.id, "2.2.2.2")
    assert other["views"] == 12
    assert await views.get_media_views(db, kv, media.id) == 12

    await db.refresh(media)
    assert media.view_count == 12


async def test_media_views_without_kv(db):
    media = await _media(db)
    await views.increment_media_view(db, None, media.id, "ip")
    result = await views.increment_media_view(db, None, media.id, "ip")
    assert result == {"views": 2, "deduped": False}


async def test_album_views_count_and_rate_limit(db, kv):
    album = await _album(db, view_count=5)

    first = await views.increment_album_view(db, kv, album.id, "1.1.1.1")
    assert first == {"success": True, "views": 6}

    for _ in range(ALBUM_VIEW_LIMIT - 1):
        assert (await views.increment_album_view(db, kv, album.id, "1.1.1.1"))["success"]

    blocked = await views.increment_album_view(db, kv, album.id, "1.1.1.1")
    assert blocked["success"] is False
    assert blocked["views"] == 5 + ALBUM_VIEW_LIMIT
    assert await views.get_album_views(db, kv, album.id) == 5 + ALBUM_VIEW_LIMIT


async def test_album_views_without_kv(db):
    album = await _album(db)
    assert await views.increment_album_view(db, None, album.id, "ip") == {"success": True, "views": 1}
    assert await views.get_album_views(db, None, album.id) == 1


def test_bot_detection():
    assert is_bot("Mozilla/5.0 (compatible; Googlebot/2.1)")
    assert is_bot("curl/8.0")
    assert not is_bot("Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) Safari/605.1.15")
    assert not is_bot(None)


async def test_media_view_db_sync_failure_keeps_kv_count(db, kv, monkeypatch):
    media = await _media(db, view_count=3)

    async def broken_sync(session, media_id):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(views, "_increment_db_media_views", broken_sync)
    result = await views.increment_media_view(db, kv, media.id, "1.1.1.1")

    assert result == {"views": 4, "deduped": False}
    assert await kv.get(f"media:view:{media.id}") == "4"
