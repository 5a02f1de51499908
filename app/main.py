"""
Photo gallery API: app assembly, error handlers, health probes and lifecycle hooks.
"""
from fastapi import FastAPI, Request, status, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import logging
import asyncio
import time

from app.config import settings
from app.database import get_db, init_db, close_db
from app.services.kv_store import get_kv_store, close_kv_store, KVStore
from app.services.storage import list_providers
from app.utils.rate_limit import limiter
from app.routes import gallery, albums, subscribe, feed, cms, cms_categories, cms_media, cms_albums

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)

# Per-endpoint HTTP rate limits
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# The admin session travels in a cookie, so origins must be explicit
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One access-log line per request, with status and duration."""
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} raised {type(e).__name__}: {e}", exc_info=True)
        raise
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
    return response


# Admin category routes first so /admin/media/categories is not taken as a media id
app.include_router(cms_categories.router, prefix="/api")
app.include_router(cms.router, prefix="/api")
app.include_router(cms_media.router, prefix="/api")
app.include_router(cms_albums.router, prefix="/api")
app.include_router(gallery.router, prefix="/api", tags=["gallery"])
app.include_router(albums.router, prefix="/api", tags=["albums"])
app.include_router(subscribe.router, prefix="/api", tags=["subscribe"])
app.include_router(feed.router, tags=["feed"])

# Locally stored media is served by the API itself
if settings.MEDIA_LOCAL_PUBLIC_URL.startswith("/"):
    app.mount(
        settings.MEDIA_LOCAL_PUBLIC_URL.rstrip("/") or "/uploads",
        StaticFiles(directory=settings.MEDIA_LOCAL_DIR, check_dir=False),
        name="uploads",
    )


# Error responses share the {"error": ..., "detail": ...} shape
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")

    # Routes raise with a ready-made dict; Starlette's own 404/405 carry a string
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail, "detail": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw input and exception context, which may not serialize."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_errors(exc)
    logger.warning(f"Rejected body for {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation error", "detail": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"{type(exc).__name__} while serving {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "detail": "Something went wrong on our side"},
    )


@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    """Liveness plus the storage providers uploads may target."""
    return {"status": "healthy", "providers": list_providers()}


@app.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database probe failed: {e}", exc_info=True)
        return {"database": "error", "status": "unhealthy", "error": "Database connection failed"}
    return {"database": "connected", "status": "healthy", "result": result.scalar()}


@app.get("/health/kv")
async def health_check_kv(kv: Optional[KVStore] = Depends(get_kv_store)):
    """Without a configured store, counters fall back to the database."""
    if kv is None:
        return {"kv": "not_configured", "status": "warning", "message": "Counters use the database"}
    try:
        await kv.ping()
    except Exception as e:
        logger.error(f"KV probe failed: {e}", exc_info=True)
        return {"kv": "error", "status": "unhealthy", "error": "KV store unreachable"}
    return {"kv": "connected", "status": "healthy", "backend": type(kv).__name__}


@app.on_event("startup")
async def startup_event():
    """
    Open the database and KV store. A database failure is logged, not fatal:
    the API still boots and only database-backed routes fail.
    """
    logger.info(f"Starting {settings.API_TITLE} {settings.API_VERSION}; CORS origins {settings.CORS_ORIGINS}")

    try:
        await init_db()
    except Exception as e:
        logger.error(f"Starting without a database ({type(e).__name__}: {e}); fix DATABASE_URL and restart")

    get_kv_store()


@app.on_event("shutdown")
async def shutdown_event():
    try:
        await close_db()
        await close_kv_store()
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.warning(f"Shutdown did not complete cleanly: {e}")
