"""
Async SQLAlchemy engine, session factory and the request-scoped session dependency.

SQLite (aiosqlite) is the zero-setup default; PostgreSQL (asyncpg) gets a
connection pool.
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from urllib.parse import urlparse
import logging

from app.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def engine_options(url: str) -> dict:
    """Keyword arguments for create_async_engine, by database flavour."""
    options = {"echo": False}
    if url.startswith("postgresql"):
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={"server_settings": {"application_name": "photo-gallery-api"}},
        )
    return options


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    # Rows stay readable after commit; routes serialize them afterwards
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


_url = settings.DATABASE_URL or MEMORY_DATABASE_URL
engine = create_async_engine(_url, **engine_options(_url))
AsyncSessionLocal = make_session_factory(engine)


async def get_db() -> AsyncSession:
    """
    Request-scoped session. Commits when the handler returns normally and
    rolls back when it raises, so routes never commit by hand.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolled back session after error: {e}", exc_info=True)
            raise


def describe_database_url(url: str) -> str:
    """
    Human-readable summary of a DATABASE_URL for startup logs.
    Raises ValueError for URLs this service cannot use.
    """
    if not url:
        raise ValueError("DATABASE_URL is empty")

    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return f"sqlite file {parsed.path or ':memory:'}"
    if not parsed.scheme.startswith("postgresql"):
        raise ValueError(f"unsupported scheme {parsed.scheme!r}")
    if not parsed.hostname:
        raise ValueError("no hostname in DATABASE_URL")
    return f"postgresql at {parsed.hostname}:{parsed.port or 5432}{parsed.path or '/postgres'}"


async def init_db():
    """Check connectivity and create missing tables. Runs on startup."""
    import app.models  # noqa: F401  (populates Base.metadata)

    try:
        target = describe_database_url(_url)
    except ValueError as e:
        logger.error(f"Refusing DATABASE_URL: {e}")
        raise

    logger.info(f"Connecting to {target}")
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        message = str(e).lower()
        if "refused" in message or "timeout" in message:
            hint = "is the server reachable?"
        elif "authentication" in message or "password" in message:
            hint = "check the credentials"
        else:
            hint = type(e).__name__
        logger.error(f"Could not open {target} ({hint}): {e}")
        raise
    logger.info(f"Schema ready on {target}")


async def close_db():
    await engine.dispose()
    logger.info("Database engine disposed")
