import pytest

from app import database
from app.config import settings
from app.database import MEMORY_DATABASE_URL, describe_database_url


def test_describe_database_url():
    assert describe_database_url(MEMORY_DATABASE_URL) == "sqlite file /:memory:"
    assert describe_database_url("postgresql+asyncpg://u:p@db.example.com/photos") == (
        "postgresql at db.example.com:5432/photos"
    )
    with pytest.raises(ValueError):
        describe_database_url("")
    with pytest.raises(ValueError):
        describe_database_url("mysql://db.example.com/photos")
    with pytest.raises(ValueError):
        describe_database_url("postgresql:///photos")


async def test_init_db_checks_the_url_the_engine_uses(monkeypatch):
    # an empty setting falls back to the in-memory engine URL, which is valid
    monkeypatch.setattr(settings, "DATABASE_URL", "")
    monkeypatch.setattr(database, "_url", MEMORY_DATABASE_URL)
    try:
        await database.init_db()
    finally:
        await database.close_db()


async def test_init_db_refuses_unsupported_urls(monkeypatch):
    monkeypatch.setattr(database, "_url", "mysql://db.example.com/photos")
    with pytest.raises(ValueError):
        await database.init_db()
