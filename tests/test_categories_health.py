import pytest


@pytest.mark.parametrize("kind", ["media", "albums"])
def test_category_crud(admin, kind):
    client = admin.client
    base = f"/api/admin/{kind}/categories"

    created = client.post(base, json={"name": "Black & White", "display_order": 2})
    assert created.status_code == 201
    category = created.json()["data"]
    assert category["slug"] == "black-white"

    client.post(base, json={"name": "Colour", "display_order": 1})
    names = [c["name"] for c in client.get(base).json()["categories"]]
    assert names == ["Colour", "Black & White"]

    conflict = client.post(base, json={"name": "Other", "slug": "black-white"})
    assert conflict.status_code == 409

    updated = client.put(f"{base}/{category['id']}", json={"name": "Mono", "show_in_frontend": 0})
    assert updated.json()["data"]["name"] == "Mono"
    assert updated.json()["data"]["show_in_frontend"] == 0
    assert updated.json()["data"]["slug"] == "black-white"

    public = client.get(f"/api/{kind}/categories").json()["categories"]
    assert [c["name"] for c in public] == ["Colour"]

    assert client.delete(f"{base}/{category['id']}").json() == {"ok": True}
    assert client.delete(f"{base}/{category['id']}").status_code == 404
    assert client.put(f"{base}/{category['id']}", json={"name": "x"}).status_code == 404


def test_category_name_required(admin):
    response = admin.client.post("/api/admin/media/categories", json={"name": "  "})
    assert response.status_code == 400


def test_categories_require_admin(client):
    assert client.get("/api/admin/media/categories").status_code == 401
    assert client.post("/api/admin/albums/categories", json={"name": "x"}).status_code == 401


def test_album_category_filter(admin):
    client = admin.client
    category = client.post("/api/admin/albums/categories", json={"name": "Travel"}).json()["data"]
    client.post("/api/admin/albums", json={"title": "Japan", "status": "published", "category_ids": [category["id"]]})
    client.post("/api/admin/albums", json={"title": "Garden", "status": "published"})

    filtered = client.get("/api/albums", params={"category": "travel"}).json()
    assert [a["title"] for a in filtered["data"]] == ["Japan"]
    assert filtered["data"][0]["categories"][0]["slug"] == "travel"
    assert client.get("/api/albums", params={"category": "nope"}).json()["total"] == 0


def test_health_endpoints(client):
    assert client.get("/").json()["status"] == "healthy"

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert {p["value"] for p in health["providers"]} == {"local", "cloudinary"}

    db = client.get("/health/db").json()
    assert db["database"] == "connected"
    assert db["result"] == 1

    kv = client.get("/health/kv").json()
    assert kv == {"kv": "connected", "status": "healthy", "backend": "MemoryKVStore"}


def test_health_kv_not_configured(harness):
    from app.main import app
    from app.services.kv_store import get_kv_store

    app.dependency_overrides[get_kv_store] = lambda: None
    assert harness.client.get("/health/kv").json()["kv"] == "not_configured"


def test_unknown_route_uses_json_errors(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"
