"""
Key-value store used for counters and rate limiting.

KV_URL selects the backend:
    redis://host:6379/0   Redis via redis.asyncio
    memory://             in-process dict with per-key expiry
    (empty)               no KV store; counters fall back to the database
"""
import logging
import time
from typing import Dict, Optional, Tuple

import redis.asyncio as aioredis

from app.config import settings

logger = logging.getLogger(__name__)


class KVStore:
    """Minimal async KV interface: string values with optional TTL in seconds."""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisKVStore(KVStore):
    def __init__(self, url: str):
        self._client = aioredis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await self._client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


class MemoryKVStore(KVStore):
    """Single-process store. Good for development and tests, not shared between workers."""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and time.monotonic() >= expires_at

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._expired(expires_at):
            del self._data[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._data[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def close(self) -> None:
        self._data.clear()


def create_kv_store(url: str) -> Optional[KVStore]:
    """
    Build a KV store for the given URL.

    Returns:
        KVStore instance, or None when url is empty

    Raises:
        ValueError: If the URL scheme is not supported
    """
    if not url:
        return None
    if url.startswith("memory://"):
        return MemoryKVStore()
    if url.startswith(("redis://", "rediss://", "unix://")):
        return RedisKVStore(url)
    raise ValueError(f"Unsupported KV_URL scheme: {url.split(':', 1)[0]}")


_kv_store: Optional[KVStore] = None
_kv_initialized = False


def get_kv_store() -> Optional[KVStore]:
    """
    FastAPI dependency returning the configured KV store (or None).
    The store is created lazily on first use.
    """
    global _kv_store, _kv_initialized
    if not _kv_initialized:
        _kv_store = create_kv_store(settings.KV_URL)
        _kv_initialized = True
        if _kv_store is None:
            logger.info("KV_URL not configured - counters will use the database")
        else:
            logger.info(f"KV store initialized: {type(_kv_store).__name__}")
    return _kv_store


async def close_kv_store() -> None:
    global _kv_store, _kv_initialized
    if _kv_store is not None:
        await _kv_store.close()
    _kv_store = None
    _kv_initialized = False


async def get_int(kv: KVStore, key: str) -> Optional[int]:
    """Read an integer counter; missing or non-numeric values read as None."""
    raw = await kv.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric KV value for {key}: {raw!r}")
        return None
