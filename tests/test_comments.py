from app.models import Album
from app.services import comment_service
from app.services.comment_service import build_comment_tree


def _comment(comment_id, created_at, parent_id=None):
    return {
        "id": comment_id,
        "album_id": "a",
        "author_name": "x",
        "content": comment_id,
        "parent_id": parent_id,
        "created_at": created_at,
    }


def test_comment_tree_orders_roots_newest_first_and_replies_oldest_first():
    comments = [
        _comment("1", "2026-02-01T00:00:00+00:00"),
        _comment("2", "2026-02-02T00:00:00+00:00"),
        _comment("3", "2026-02-01T01:00:00+00:00", parent_id="1"),
        _comment("4", "2026-02-01T00:30:00+00:00", parent_id="1"),
        _comment("5", "2026-02-03T00:00:00+00:00", parent_id="missing"),
    ]

    tree = build_comment_tree(comments)

    assert [c["id"] for c in tree] == ["5", "2", "1"]
    root_one = next(c for c in tree if c["id"] == "1")
    assert [c["id"] for c in root_one["children"]] == ["4", "3"]
    assert tree[1]["children"] == []


def test_comment_tree_nests_several_levels():
    comments = [
        _comment("root", "2026-01-01T00:00:00+00:00"),
        _comment("reply", "2026-01-01T01:00:00+00:00", parent_id="root"),
        _comment("nested", "2026-01-01T02:00:00+00:00", parent_id="reply"),
    ]
    tree = build_comment_tree(comments)
    assert len(tree) == 1
    assert tree[0]["children"][0]["children"][0]["id"] == "nested"


async def test_create_comment_encodes_author_fields(db):
    comment = await comment_service.create_comment(
        db,
        album_id="album-1",
        author_name="<script>",
        author_email="a@example.com",
        content="Nice **shot**",
        author_ip="10.0.0.1",
        author_url="https://example.com/",
    )
    assert comment.comment_status == "pending"
    assert comment.comment_author_name == "&lt;script&gt;"
    assert comment.comment_author_url == "https:&#x2F;&#x2F;example.com&#x2F;"

    data = comment_service.serialize_comment(comment)
    assert data["content_html"] == "Nice <strong>shot</strong>"
    assert "author_email" not in data

    private = comment_service.serialize_comment(comment, with_private=True)
    assert private["author_email"] == "a@example.com"
    assert private["author_ip"] == "10.0.0.1"


async def test_visitors_only_see_approved_comments(db):
    pending = await comment_service.create_comment(db, "album-1", "A", "a@x.io", "one", "1.1.1.1")
    approved = await comment_service.create_comment(
        db, "album-1", "B", "b@x.io", "two", "1.1.1.1", status="approved"
    )
    await comment_service.create_comment(db, "album-2", "C", "c@x.io", "other", "1.1.1.1", status="approved")

    visible = await comment_service.get_album_comments(db, "album-1")
    assert [c.comment_id for c in visible] == [approved.comment_id]
    everything = await comment_service.get_album_comments(db, "album-1", include_all=True)
    assert {c.comment_id for c in everything} == {pending.comment_id, approved.comment_id}

    assert await comment_service.count_album_comments(db, "album-1") == 1
    assert await comment_service.count_album_comments(db, "album-1", only_approved=False) == 2


async def test_approve_and_delete_comment(db):
    parent = await comment_service.create_comment(db, "album-1", "A", "a@x.io", "parent", "1.1.1.1")
    await comment_service.create_comment(db, "album-1", "B", "b@x.io", "reply", "1.1.1.1", parent_id=parent.comment_id)

    assert await comment_service.approve_comment(db, parent.comment_id)
    assert not await comment_service.approve_comment(db, "missing")

    assert await comment_service.delete_comment(db, parent.comment_id)
    assert await comment_service.get_album_comments(db, "album-1", include_all=True) == []
    assert not await comment_service.delete_comment(db, parent.comment_id)


async def test_admin_listing_filters_by_status(db):
    await comment_service.create_comment(db, "album-1", "A", "a@x.io", "one", "1.1.1.1")
    await comment_service.create_comment(db, "album-1", "B", "b@x.io", "two", "1.1.1.1", status="approved")

    everything = await comment_service.list_comments_admin(db, status="all")
    assert everything["total"] == 2
    pending = await comment_service.list_comments_admin(db, status="pending")
    assert pending["total"] == 1
    assert pending["results"][0]["author_email"] == "a@x.io"


def _published_album(harness, **fields):
    async def _create(session):
        album = Album(title="Trip", slug="trip", status="published", **fields)
        session.add(album)
        await session.flush()
        return album.id
    return harness.run(_create)


def test_visitor_comment_is_pending_but_visible_to_its_author(harness):
    album_id = _published_album(harness)
    client = harness.client

    response = client.post(
        f"/api/albums/{album_id}/comments",
        json={"author_name": "Visitor", "author_email": "v@example.com", "content": "Lovely"},
    )
    assert response.status_code == 201
    comment = response.json()["data"]
    assert comment["status"] == "pending"

    own = client.get(f"/api/albums/{album_id}/comments").json()
    assert [c["id"] for c in own["comments"]] == [comment["id"]]
    assert own["isAdmin"] is False

    client.cookies.clear()
    stranger = client.get(f"/api/albums/{album_id}/comments").json()
    assert stranger["comments"] == []


def test_comment_requires_author_and_content(harness):
    album_id = _published_album(harness)
    client = harness.client

    missing_author = client.post(f"/api/albums/{album_id}/comments", json={"content": "hi"})
    assert missing_author.status_code == 400
    assert missing_author.json()["error"] == "Missing required fields"

    missing_content = client.post(
        f"/api/albums/{album_id}/comments",
        json={"author_name": "V", "author_email": "v@example.com", "content": "   "},
    )
    assert missing_content.status_code == 400
    assert missing_content.json()["error"] == "Missing content"


def test_comment_on_unknown_album_is_404(client):
    response = client.post(
        "/api/albums/nope/comments",
        json={"author_name": "V", "author_email": "v@example.com", "content": "hi"},
    )
    assert response.status_code == 404


def test_protected_album_comments_need_access(harness):
    album_id = _published_album(harness, password="secret")
    response = harness.client.get(f"/api/albums/{album_id}/comments")
    assert response.status_code == 403
    assert response.json()["code"] == "PASSWORD_REQUIRED"


def test_admin_comment_is_approved_with_default_author(admin):
    album_id = _published_album(admin)
    response = admin.client.post(f"/api/albums/{album_id}/comments", json={"content": "Thanks all"})
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["author_name"] == "Admin"

    listing = admin.client.get(f"/api/albums/{album_id}/comments").json()
    assert listing["isAdmin"] is True
    assert listing["comments"][0]["author_email"] == "admin@local"


def test_moderation_flow(admin):
    album_id = _published_album(admin)
    client = admin.client

    client.cookies.delete("photos_admin")
    created = client.post(
        f"/api/albums/{album_id}/comments",
        json={"author_name": "V", "author_email": "v@example.com", "content": "Pending one"},
    ).json()["data"]

    assert client.post(f"/api/admin/album-comments/{created['id']}/approve").status_code == 401

    admin.login()
    pending = client.get("/api/admin/album-comments", params={"status": "pending"}).json()
    assert [c["id"] for c in pending["results"]] == [created["id"]]

    assert client.post(f"/api/admin/album-comments/{created['id']}/approve").json() == {"ok": True}
    approved = client.get("/api/admin/album-comments", params={"status": "approved"}).json()
    assert approved["total"] == 1

    client.cookies.clear()
    public = client.get(f"/api/albums/{album_id}/comments").json()
    assert [c["id"] for c in public["comments"]] == [created["id"]]

    admin.login()
    assert client.delete(f"/api/admin/album-comments/{created['id']}").status_code == 200
    assert client.delete(f"/api/admin/album-comments/{created['id']}").status_code == 404


def test_album_scoped_moderation_requires_admin(admin):
    album_id = _published_album(admin)
    client = admin.client
    created = client.post(f"/api/albums/{album_id}/comments", json={"content": "by admin"}).json()["data"]

    assert client.post(f"/api/albums/{album_id}/comments/{created['id']}/approve").status_code == 200
    assert client.delete(f"/api/albums/{album_id}/comments/{created['id']}").status_code == 200
    assert client.delete(f"/api/albums/{album_id}/comments/{created['id']}").status_code == 404

    client.cookies.clear()
    assert client.delete(f"/api/albums/{album_id}/comments/{created['id']}").status_code == 401


def test_comment_tree_accepts_naive_timestamps():
    tree = build_comment_tree([
        _comment("old", "2026-01-01T00:00:00"),
        _comment("new", "2026-01-02T00:00:00+00:00"),
    ])
    assert [c["id"] for c in tree] == ["new", "old"]


def test_album_comments_are_returned_nested(admin):
    album_id = _published_album(admin)
    client = admin.client

    root = client.post(f"/api/albums/{album_id}/comments", json={"content": "First"}).json()["data"]
    reply = client.post(
        f"/api/albums/{album_id}/comments",
        json={"content": "Replying", "parent_id": root["id"]},
    ).json()["data"]
    assert reply["parent_id"] == root["id"]

    listing = client.get(f"/api/albums/{album_id}/comments").json()
    assert len(listing["comments"]) == 2
    assert [c["id"] for c in listing["tree"]] == [root["id"]]
    assert [c["id"] for c in listing["tree"][0]["children"]] == [reply["id"]]
