from app.config import settings
from app.utils import auth
from app.utils.auth import hash_password, hash_password_pbkdf2, verify_admin_credentials, verify_password
from app.utils.jwt_auth import COOKIE_NAME, create_session_token, verify_session_token
from app.services.rate_limiter import MAX_ATTEMPTS


def test_pbkdf2_hash_round_trip():
    hashed = hash_password_pbkdf2("s3cret", iterations=1000)
    assert hashed.startswith("pbkdf2:1000:")
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_bcrypt_hash_is_accepted():
    hashed = hash_password("s3cret")
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_malformed_hashes_never_verify():
    assert not verify_password("x", "pbkdf2:abc:00:00")
    assert not verify_password("x", "pbkdf2:1000:zz:zz")
    assert not verify_password("x", "pbkdf2:1000")
    assert not verify_password("x", "plain-text")


def test_admin_credentials(admin_credentials):
    assert verify_admin_credentials(admin_credentials["username"], admin_credentials["password"])
    assert not verify_admin_credentials("someone", admin_credentials["password"])
    assert not verify_admin_credentials(admin_credentials["username"], "nope")


def test_plaintext_admin_password_when_no_hash(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASS_HASH", "")
    monkeypatch.setattr(settings, "ADMIN_PASS", "letmein")
    assert verify_admin_credentials("admin", "letmein")
    assert not verify_admin_credentials("admin", "letmeout")


def test_admin_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "SESSION_SECRET", "")
    assert not auth.admin_configured()


def test_session_token_round_trip():
    token = create_session_token("secret", "admin")
    result = verify_session_token("secret", token)
    assert result.ok
    assert result.username == "admin"


def test_session_token_rejects_wrong_secret_and_expiry():
    token = create_session_token("secret", "admin")
    assert not verify_session_token("other", token).ok

    expired = create_session_token("secret", "admin", max_age=-60)
    assert not verify_session_token("secret", expired).ok
    assert not verify_session_token("secret", "garbage").ok


def test_login_sets_session_cookie(client, admin_credentials):
    assert client.get("/api/admin/me").status_code == 401

    response = client.post("/api/admin/login", json=admin_credentials)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "user": "admin"}
    set_cookie = response.headers["set-cookie"]
    assert f"{COOKIE_NAME}=" in set_cookie
    assert "httponly" in set_cookie.lower()

    assert client.get("/api/admin/me").json() == {"ok": True, "user": "admin"}

    client.post("/api/admin/logout")
    assert client.get("/api/admin/me").status_code == 401


def test_login_rejects_wrong_password(client, admin_credentials):
    response = client.post(
        "/api/admin/login",
        json={"username": admin_credentials["username"], "password": "wrong"},
    )
    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Invalid credentials"}


def test_login_locks_out_after_repeated_failures(client, admin_credentials):
    bad = {"username": admin_credentials["username"], "password": "wrong"}
    for _ in range(MAX_ATTEMPTS):
        assert client.post("/api/admin/login", json=bad).status_code == 401

    locked = client.post("/api/admin/login", json=admin_credentials)
    assert locked.status_code == 429
    body = locked.json()
    assert body["error"] == "Too many login attempts"
    assert body["retryAfter"] > 0
    assert int(locked.headers["retry-after"]) == body["retryAfter"]


def test_successful_login_clears_failures(harness, admin_credentials):
    client = harness.client
    bad = {"username": admin_credentials["username"], "password": "wrong"}
    for _ in range(MAX_ATTEMPTS - 1):
        client.post("/api/admin/login", json=bad)
    assert client.post("/api/admin/login", json=admin_credentials).status_code == 200

    for _ in range(MAX_ATTEMPTS - 1):
        client.post("/api/admin/login", json=bad)
    assert client.post("/api/admin/login", json=admin_credentials).status_code == 200


def test_login_when_admin_not_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_USER", "")
    response = client.post("/api/admin/login", json={"username": "admin", "password": "x"})
    assert response.status_code == 500
    assert response.json()["error"] == "Admin not configured"


def test_tampered_session_cookie_is_rejected(client):
    client.cookies.set(COOKIE_NAME, create_session_token("not-the-secret", "admin"))
    assert client.get("/api/admin/me").status_code == 401


def test_providers_listing(admin):
    data = admin.client.get("/api/admin/providers").json()
    assert data["ok"] is True
    assert data["default"] == "local"
    local = next(p for p in data["providers"] if p["value"] == "local")
    assert local["available"] is True


def test_hash_script_generates_and_verifies(monkeypatch, capsys):
    import generate_password_hash as script

    answers = iter(["hunter22", "hunter22"])
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt: next(answers))
    assert script.main([]) == 0
    line = [l for l in capsys.readouterr().out.splitlines() if l.startswith("ADMIN_PASS_HASH=")][0]
    hashed = line.split("=", 1)[1]
    assert hashed.startswith("pbkdf2:")

    monkeypatch.setattr(script.getpass, "getpass", lambda prompt: "hunter22")
    assert script.main(["--verify", hashed]) == 0
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt: "nope")
    assert script.main(["--verify", hashed]) == 1


def test_hash_script_rejects_mismatched_entries(monkeypatch):
    import generate_password_hash as script

    answers = iter(["one", "two"])
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt: next(answers))
    assert script.main(["--bcrypt"]) == 1
