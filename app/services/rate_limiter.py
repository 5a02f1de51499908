"""
KV-backed rate limiting primitives.

Login attempts are tracked per client IP in a fixed window: the first failure
opens the window, and once MAX_ATTEMPTS failures accumulate the IP is locked
out until the window closes. Without a KV store every check is allowed.
"""
import hashlib
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

from app.services.kv_store import KVStore, get_int

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
WINDOW_SECONDS = 15 * 60

LOGIN_KEY_PREFIX = "login:rate:"


def hash_ip(ip: str) -> str:
    """Short stable digest of a client IP for use in KV keys."""
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()[:16]


def _login_key(ip: str) -> str:
    return f"{LOGIN_KEY_PREFIX}{hash_ip(ip)}"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: Optional[int] = None


async def _read_record(kv: KVStore, key: str) -> Optional[dict]:
    raw = await kv.get(key)
    if not raw:
        return None
    try:
        record = json.loads(raw)
        return {"count": int(record["count"]), "firstAt": int(record["firstAt"])}
    except (ValueError, KeyError, TypeError):
        logger.warning(f"Discarding malformed login rate record at {key}")
        return None


async def check_login_rate_limit(kv: Optional[KVStore], ip: str) -> RateLimitResult:
    """
    Check whether a login attempt from ip is allowed.

    Args:
        kv: KV store, or None when not configured
        ip: Client IP address

    Returns:
        RateLimitResult with remaining attempts, or retry_after seconds when locked out
    """
    if kv is None:
        return RateLimitResult(allowed=True, remaining=MAX_ATTEMPTS)

    record = await _read_record(kv, _login_key(ip))
    if record is None:
        return RateLimitResult(allowed=True, remaining=MAX_ATTEMPTS)

    window_ms = WINDOW_SECONDS * 1000
    elapsed = _now_ms() - record["firstAt"]
    if elapsed >= window_ms:
        return RateLimitResult(allowed=True, remaining=MAX_ATTEMPTS)

    if record["count"] >= MAX_ATTEMPTS:
        retry_after = math.ceil((window_ms - elapsed) / 1000)
        return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

    return RateLimitResult(allowed=True, remaining=MAX_ATTEMPTS - record["count"])


async def record_failed_login(kv: Optional[KVStore], ip: str) -> None:
    """Count a failed login; restarts the window if the previous one has closed."""
    if kv is None:
        return

    key = _login_key(ip)
    now = _now_ms()
    record = await _read_record(kv, key)

    if record is None or now - record["firstAt"] >= WINDOW_SECONDS * 1000:
        record = {"count": 1, "firstAt": now}
    else:
        record["count"] += 1

    await kv.put(key, json.dumps(record), ttl=WINDOW_SECONDS)
    if record["count"] >= MAX_ATTEMPTS:
        logger.warning(f"Login locked out for ip hash {hash_ip(ip)} after {record['count']} failures")


async def clear_login_rate_limit(kv: Optional[KVStore], ip: str) -> None:
    if kv is None:
        return
    await kv.delete(_login_key(ip))


async def hit_fixed_window(kv: KVStore, key: str, limit: int, window: int) -> bool:
    """
    Count one hit against key. Returns False (and does not count) when the
    limit is already reached inside the current window.
    """
    current = await get_int(kv, key) or 0
    if current >= limit:
        return False
    await kv.put(key, str(current + 1), ttl=window)
    return True
