"""
Shared fixtures.

Settings are read when app.config is imported, so the test environment
is put in place before anything from the app package is loaded.
"""
import asyncio
import hashlib
import io
import os
import tempfile
from pathlib import Path

_TMP = Path(tempfile.mkdtemp(prefix="photo-gallery-tests-"))

ADMIN_USER = "admin"
ADMIN_PASSWORD = "correct horse battery staple"
_SALT = bytes(range(16))
_ITERATIONS = 1000
_DIGEST = hashlib.pbkdf2_hmac("sha256", ADMIN_PASSWORD.encode("utf-8"), _SALT, _ITERATIONS, 32)

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP / 'app.db'}"
os.environ["KV_URL"] = "memory://"
os.environ["ADMIN_USER"] = ADMIN_USER
os.environ["ADMIN_PASS"] = ""
os.environ["ADMIN_PASS_HASH"] = f"pbkdf2:{_ITERATIONS}:{_SALT.hex()}:{_DIGEST.hex()}"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = "test-resend-key"
os.environ["GEOCODE_ENABLED"] = "false"
os.environ["MEDIA_DEFAULT_PROVIDER"] = "local"
os.environ["MEDIA_LOCAL_DIR"] = str(_TMP / "uploads")
os.environ["MEDIA_LOCAL_PUBLIC_URL"] = "/uploads"
os.environ["MEDIA_DOMAIN"] = ""
os.environ["SITE_URL"] = "https://photos.example.com"

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.database import Base, get_db, make_session_factory
from app.main import app
from app.services.kv_store import MemoryKVStore, get_kv_store
from app import models as _models  # noqa: F401


def make_jpeg(color="red", size=(64, 48), exif=None) -> bytes:
    """Small in-memory JPEG; different colors give different file hashes."""
    buf = io.BytesIO()
    image = Image.new("RGB", size, color)
    if exif is not None:
        image.save(buf, "JPEG", exif=exif)
    else:
        image.save(buf, "JPEG")
    return buf.getvalue()


def _engine_for(path: Path):
    # NullPool: connections never outlive the event loop that opened them
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def _create_tables(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def jpeg():
    return make_jpeg


@pytest.fixture
def admin_credentials():
    return {"username": ADMIN_USER, "password": ADMIN_PASSWORD}


@pytest.fixture
def kv():
    return MemoryKVStore()


@pytest.fixture
async def db(tmp_path):
    """Async session on a fresh database, for service-level tests."""
    engine = _engine_for(tmp_path / "service.db")
    await _create_tables(engine)
    session_factory = make_session_factory(engine)
    async with session_factory() as session:
        yield session
    await engine.dispose()


class Harness:
    """TestClient plus direct database access for seeding and assertions."""

    def __init__(self, client: TestClient, session_factory, kv: MemoryKVStore):
        self.client = client
        self.session_factory = session_factory
        self.kv = kv

    def run(self, fn):
        """Run fn(session) in a committed transaction and return its result."""
        async def _go():
            async with self.session_factory() as session:
                result = await fn(session)
                await session.commit()
                return result
        return asyncio.run(_go())

    def login(self):
        response = self.client.post(
            "/api/admin/login",
            json={"username": ADMIN_USER, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 200, response.text
        return response


@pytest.fixture
def harness(tmp_path):
    engine = _engine_for(tmp_path / "api.db")
    asyncio.run(_create_tables(engine))
    session_factory = make_session_factory(engine)
    store = MemoryKVStore()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: store

    with TestClient(app) as client:
        yield Harness(client, session_factory, store)

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


@pytest.fixture
def client(harness):
    return harness.client


@pytest.fixture
def admin(harness):
    """Harness whose client carries an admin session cookie."""
    harness.login()
    return harness
