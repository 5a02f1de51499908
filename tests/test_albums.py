from app.models import Album, AlbumMedia, Media
from app.schemas import AlbumCreate, AlbumUpdate
from app.services import album_service, media_service


async def _media(db, name: str) -> Media:
    media = Media(url=f"/uploads/{name}.jpg", filename=f"{name}.jpg", title=name)
    db.add(media)
    await db.flush()
    return media


async def test_create_album_defaults(db):
    album = await album_service.create_album(db, AlbumCreate(title="Summer Trip 2024", tags=["sea", "sea", "sun"]))
    assert album.slug == "summer-trip-2024"
    assert album.status == "draft"

    detail = await album_service.get_album_detail(db, album)
    assert detail["tags"] == ["sea", "sun"]
    assert detail["is_protected"] is False
    assert "password" not in detail


async def test_update_album_applies_only_given_fields(db):
    album = await album_service.create_album(
        db, AlbumCreate(title="Trip", description="keep me", password="pw", status="published")
    )
    updated = await album_service.update_album(db, album.id, AlbumUpdate(password=""))
    assert updated.password is None
    assert updated.description == "keep me"
    assert updated.status == "published"

    assert await album_service.update_album(db, "missing", AlbumUpdate(title="x")) is None


async def test_unlock_with_password_and_reuse_token(db):
    album = await album_service.create_album(db, AlbumCreate(title="Private", password="open sesame"))

    assert await album_service.unlock_album(db, album, "wrong") is None
    token = await album_service.unlock_album(db, album, "open sesame")
    assert token

    assert await album_service.can_access_album(db, album, False, f"Bearer {token}")
    assert not await album_service.can_access_album(db, album, False, None)
    assert not await album_service.can_access_album(db, album, False, "Bearer nope")
    assert await album_service.can_access_album(db, album, True, None)

    # a valid token unlocks as well
    assert await album_service.unlock_album(db, album, token) == token


async def test_otp_unlocks_protected_album(db):
    album = await album_service.create_album(db, AlbumCreate(title="Private", password="pw"))
    otp = await album_service.create_album_otp(db, album.id)
    assert len(otp) == 6 and otp.isdigit()
    assert await album_service.unlock_album(db, album, otp) == otp
    assert await album_service.can_access_album(db, album, False, f"bearer {otp}")


def test_bearer_token_parsing():
    assert album_service.bearer_token("Bearer abc") == "abc"
    assert album_service.bearer_token("bearer  abc ") == "abc"
    assert album_service.bearer_token("Basic abc") is None
    assert album_service.bearer_token("Bearer") is None
    assert album_service.bearer_token(None) is None


async def test_album_media_membership_keeps_count(db):
    album = await album_service.create_album(db, AlbumCreate(title="Set"))
    a, b, c = [await _media(db, n) for n in ("a", "b", "c")]

    result = await album_service.add_media_to_album(db, album.id, [a.id, b.id, "unknown"])
    assert result == {"added": [a.id, b.id], "media_count": 2}

    result = await album_service.add_media_to_album(db, album.id, [b.id, c.id])
    assert result == {"added": [c.id], "media_count": 3}

    page = await album_service.get_album_media(db, album.id)
    assert [m["id"] for m in page["media"]] == [a.id, b.id, c.id]

    assert await album_service.remove_media_from_album(db, album.id, [b.id]) == 2


async def test_deleting_media_updates_albums(db):
    album = await album_service.create_album(db, AlbumCreate(title="Set"))
    a = await _media(db, "a")
    b = await _media(db, "b")
    await album_service.add_media_to_album(db, album.id, [a.id, b.id])
    await album_service.update_album(db, album.id, AlbumUpdate(cover_media_id=a.id))

    assert await media_service.delete_media(db, a.id)

    await db.refresh(album)
    assert album.media_count == 1
    assert album.cover_media_id is None


async def test_public_listing_hides_drafts(db):
    await album_service.create_album(db, AlbumCreate(title="Draft"))
    await album_service.create_album(db, AlbumCreate(title="Live", status="published"))

    public = await album_service.list_public_albums(db)
    assert [a["title"] for a in public["data"]] == ["Live"]

    everything = await album_service.list_admin_albums(db)
    assert everything["total"] == 2
    assert "password" in everything["data"][0]

    searched = await album_service.list_public_albums(db, q="liv")
    assert searched["total"] == 1


def _seed_album(harness, **fields):
    async def _create(session):
        album = Album(title=fields.pop("title", "Trip"), **fields)
        session.add(album)
        await session.flush()
        return album.id
    return harness.run(_create)


def test_public_album_routes(harness):
    album_id = _seed_album(harness, title="Coast", slug="coast", status="published")
    _seed_album(harness, title="Hidden", slug="hidden", status="draft")
    client = harness.client

    listing = client.get("/api/albums").json()
    assert listing["ok"] is True
    assert [a["slug"] for a in listing["data"]] == ["coast"]

    by_slug = client.get("/api/albums/coast").json()
    assert by_slug["data"]["id"] == album_id
    assert by_slug["data"]["comment_count"] == 0
    assert client.get(f"/api/albums/{album_id}").status_code == 200

    assert client.get("/api/albums/hidden").status_code == 404
    assert client.get("/api/albums/does-not-exist").status_code == 404


def test_admin_sees_draft_album(admin):
    _seed_album(admin, title="Hidden", slug="hidden", status="draft")
    assert admin.client.get("/api/albums/hidden").status_code == 200


def test_protected_album_unlock_flow(harness):
    album_id = _seed_album(harness, title="Secret", slug="secret", status="published", password="pw")
    client = harness.client

    denied = client.get("/api/albums/secret")
    assert denied.status_code == 403
    assert denied.json() == {
        "ok": False,
        "error": "Password required",
        "code": "PASSWORD_REQUIRED",
        "data": {"hasPassword": True},
    }
    assert client.get("/api/albums/secret/media").status_code == 403

    assert client.post("/api/albums/secret/unlock", json={"password": ""}).status_code == 400
    wrong = client.post("/api/albums/secret/unlock", json={"password": "nope"})
    assert wrong.status_code == 403
    assert wrong.json()["code"] == "INVALID_PASSWORD"

    token = client.post("/api/albums/secret/unlock", json={"password": "pw"}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    detail = client.get("/api/albums/secret", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["is_protected"] is True
    assert "password" not in detail.json()["data"]
    assert client.get(f"/api/albums/{album_id}/media", headers=headers).json()["total"] == 0


def test_album_likes_follow_cookie(harness):
    album_id = _seed_album(harness, slug="liked", status="published")
    client = harness.client

    assert client.get("/api/albums/liked/like").json() == {"success": True, "likes": 0, "liked": False}

    liked = client.post("/api/albums/liked/like")
    assert liked.json() == {"success": True, "likes": 1, "liked": True}
    assert client.get("/api/albums/liked/like").json()["liked"] is True

    # the cookie makes a repeat like a no-op
    assert client.post("/api/albums/liked/like").json()["likes"] == 1

    unliked = client.delete(f"/api/albums/{album_id}/like")
    assert unliked.json() == {"success": True, "likes": 0, "liked": False}
    assert client.get("/api/albums/liked/like").json()["liked"] is False


def test_album_views(harness):
    _seed_album(harness, slug="viewed", status="published")
    client = harness.client

    assert client.post("/api/albums/viewed/view").json() == {"success": True, "views": 1}
    bot = client.post("/api/albums/viewed/view", headers={"User-Agent": "Googlebot/2.1"}).json()
    assert bot == {"success": True, "views": 1, "skipped": True}
    assert client.get("/api/albums/viewed/view").json() == {"success": True, "views": 1}


def test_admin_album_crud(admin):
    client = admin.client

    created = client.post(
        "/api/admin/albums",
        json={"title": "Road Trip", "password": "pw", "tags": ["road"], "status": "published"},
    )
    assert created.status_code == 201
    album = created.json()["data"]
    assert album["slug"] == "road-trip"
    assert album["password"] == "pw"

    conflict = client.post("/api/admin/albums", json={"title": "Another", "slug": "road-trip"})
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "Slug already exists"

    updated = client.put(f"/api/admin/albums/{album['id']}", json={"description": "Along the coast"})
    assert updated.json()["data"]["description"] == "Along the coast"
    assert updated.json()["data"]["tags"] == ["road"]

    listing = client.get("/api/admin/albums", params={"q": "road"}).json()
    assert listing["total"] == 1

    assert client.get(f"/api/admin/albums/{album['id']}").json()["data"]["title"] == "Road Trip"
    assert client.delete(f"/api/admin/albums/{album['id']}").json() == {"ok": True}
    assert client.get(f"/api/admin/albums/{album['id']}").status_code == 404


def test_admin_album_validation(admin):
    response = admin.client.post("/api/admin/albums", json={"title": "   "})
    assert response.status_code == 400
    assert response.json()["error"] == "Validation error"

    bad_status = admin.client.post("/api/admin/albums", json={"title": "x", "status": "archived"})
    assert bad_status.status_code == 400


def test_admin_album_media_and_otp(admin):
    client = admin.client

    async def _seed(session):
        media = [Media(url=f"/uploads/{n}.jpg", filename=f"{n}.jpg") for n in ("a", "b")]
        session.add_all(media)
        await session.flush()
        return [m.id for m in media]

    media_ids = admin.run(_seed)
    album = client.post("/api/admin/albums", json={"title": "Set", "password": "pw", "status": "published"}).json()["data"]

    assert client.post(f"/api/admin/albums/{album['id']}/media", json={"media_ids": []}).status_code == 400

    added = client.post(f"/api/admin/albums/{album['id']}/media", json={"media_ids": media_ids}).json()
    assert added == {"ok": True, "added": media_ids, "media_count": 2}
    assert client.get(f"/api/admin/albums/{album['id']}/media").json()["total"] == 2

    removed = client.request(
        "DELETE", f"/api/admin/albums/{album['id']}/media", json={"media_ids": media_ids[:1]}
    ).json()
    assert removed == {"ok": True, "media_count": 1}

    otp = client.post(f"/api/admin/albums/{album['id']}/otp").json()["otp"]
    client.cookies.clear()
    unlocked = client.post(f"/api/albums/{album['id']}/unlock", json={"password": otp})
    assert unlocked.json() == {"ok": True, "token": otp}


def test_admin_album_routes_require_session(client):
    assert client.get("/api/admin/albums").status_code == 401
    assert client.post("/api/admin/albums", json={"title": "x"}).status_code == 401
