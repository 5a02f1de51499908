import json
import time

import pytest

from app.services import rate_limiter
from app.services.kv_store import MemoryKVStore, RedisKVStore, create_kv_store, get_int
from app.services.rate_limiter import (
    MAX_ATTEMPTS,
    WINDOW_SECONDS,
    check_login_rate_limit,
    clear_login_rate_limit,
    hash_ip,
    hit_fixed_window,
    record_failed_login,
)


def test_create_kv_store_by_scheme():
    assert create_kv_store("") is None
    assert isinstance(create_kv_store("memory://"), MemoryKVStore)
    assert isinstance(create_kv_store("redis://localhost:6379/0"), RedisKVStore)
    with pytest.raises(ValueError):
        create_kv_store("ftp://example.com")


async def test_memory_store_expires_keys(kv):
    await kv.put("a", "1", ttl=10)
    await kv.put("b", "2")
    assert await kv.get("a") == "1"

    # move the expiry into the past
    kv._data["a"] = ("1", time.monotonic() - 1)
    assert await kv.get("a") is None
    assert await kv.get("b") == "2"

    await kv.delete("b")
    assert await kv.get("b") is None


async def test_get_int_ignores_garbage(kv):
    await kv.put("n", "41")
    await kv.put("bad", "forty")
    assert await get_int(kv, "n") == 41
    assert await get_int(kv, "bad") is None
    assert await get_int(kv, "missing") is None


def test_hash_ip_is_stable_and_short():
    assert hash_ip("1.2.3.4") == hash_ip("1.2.3.4")
    assert hash_ip("1.2.3.4") != hash_ip("1.2.3.5")
    assert len(hash_ip("1.2.3.4")) == 16


async def test_login_limit_without_kv_always_allows():
    await record_failed_login(None, "1.2.3.4")
    result = await check_login_rate_limit(None, "1.2.3.4")
    assert result.allowed
    assert result.remaining == MAX_ATTEMPTS


async def test_login_lockout_after_max_attempts(kv):
    ip = "203.0.113.9"
    for attempt in range(MAX_ATTEMPTS - 1):
        await record_failed_login(kv, ip)
        result = await check_login_rate_limit(kv, ip)
        assert result.allowed
        assert result.remaining == MAX_ATTEMPTS - attempt - 1

    await record_failed_login(kv, ip)
    result = await check_login_rate_limit(kv, ip)
    assert not result.allowed
    assert result.remaining == 0
    assert 0 < result.retry_after <= WINDOW_SECONDS

    # another client is unaffected
    assert (await check_login_rate_limit(kv, "203.0.113.10")).allowed

    await clear_login_rate_limit(kv, ip)
    assert (await check_login_rate_limit(kv, ip)).allowed


async def test_login_window_expiry_resets_the_count(kv, monkeypatch):
    ip = "198.51.100.1"
    for _ in range(MAX_ATTEMPTS):
        await record_failed_login(kv, ip)
    assert not (await check_login_rate_limit(kv, ip)).allowed

    later = int(time.time() * 1000) + (WINDOW_SECONDS + 1) * 1000
    monkeypatch.setattr(rate_limiter, "_now_ms", lambda: later)
    assert (await check_login_rate_limit(kv, ip)).allowed

    await record_failed_login(kv, ip)
    record = json.loads(await kv.get(f"login:rate:{hash_ip(ip)}"))
    assert record == {"count": 1, "firstAt": later}


async def test_malformed_login_record_is_ignored(kv):
    ip = "192.0.2.1"
    await kv.put(f"login:rate:{hash_ip(ip)}", "not json")
    assert (await check_login_rate_limit(kv, ip)).allowed


async def test_fixed_window(kv):
    assert await hit_fixed_window(kv, "k", limit=2, window=60)
    assert await hit_fixed_window(kv, "k", limit=2, window=60)
    assert not await hit_fixed_window(kv, "k", limit=2, window=60)
    assert await kv.get("k") == "2"
