"""
Storage provider abstraction for uploaded media.

Providers:
    local       files under MEDIA_LOCAL_DIR, served from MEDIA_LOCAL_PUBLIC_URL
    cloudinary  Cloudinary media library
"""
import asyncio
import logging
from pathlib import Path
from typing import List

from app.config import settings
from app.services import cloudinary_service

logger = logging.getLogger(__name__)

PROVIDERS = ("local", "cloudinary")


class StorageError(Exception):
    """Raised when a storage provider is unknown, unavailable or rejects an operation."""


def _local_target(key: str) -> Path:
    base = Path(settings.MEDIA_LOCAL_DIR).resolve()
    target = (base / key.lstrip("/")).resolve()
    if target != base and base not in target.parents:
        raise StorageError("Invalid media key")
    return target


def provider_available(provider: str) -> bool:
    if provider == "local":
        return bool(settings.MEDIA_LOCAL_DIR)
    if provider == "cloudinary":
        return cloudinary_service.validate_cloudinary_config()
    return False


def default_provider() -> str:
    if settings.MEDIA_DEFAULT_PROVIDER:
        return settings.MEDIA_DEFAULT_PROVIDER
    for provider in PROVIDERS:
        if provider_available(provider):
            return provider
    return "local"


def list_providers() -> List[dict]:
    labels = {"local": "Local (Disk)", "cloudinary": "Cloudinary"}
    return [
        {"value": p, "label": labels[p], "available": provider_available(p)}
        for p in PROVIDERS
    ]


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


async def put_object(provider: str, key: str, data: bytes, content_type: str) -> str:
    """
    Store an object and return its public URL.

    Raises:
        StorageError: If the provider is unsupported or the key is invalid
    """
    if provider == "local":
        target = _local_target(key)
        await asyncio.to_thread(_write_file, target, data)
        logger.info(f"Stored {len(data):,} bytes at {target}")
        return public_url_for_key(provider, key)

    if provider == "cloudinary":
        if not cloudinary_service.validate_cloudinary_config():
            raise StorageError("Cloudinary credentials not configured")
        result = await cloudinary_service.upload_image(data, key)
        if settings.MEDIA_DOMAIN:
            return public_url_for_key(provider, key)
        return result["url"]

    raise StorageError(f"Unsupported media provider: {provider}")


async def delete_object(provider: str, key: str) -> None:
    if provider == "local":
        target = _local_target(key)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        return

    if provider == "cloudinary":
        await cloudinary_service.delete_image(key)
        return

    raise StorageError(f"Unsupported media provider: {provider}")


def public_url_for_key(provider: str, key: str) -> str:
    sanitized = key.lstrip("/")
    if provider == "local":
        base = settings.MEDIA_LOCAL_PUBLIC_URL or "/uploads"
        return f"{base.rstrip('/')}/{sanitized}"

    if settings.MEDIA_DOMAIN:
        return f"{settings.MEDIA_DOMAIN.rstrip('/')}/{sanitized}"

    if provider == "cloudinary":
        return cloudinary_service.get_public_url(key)

    raise StorageError(f"Unsupported media provider: {provider}")
