"""
Per-user response cache with staleness windows.

Slow-changing Harvest reads (projects, task assignments, expense categories,
the current user, the managed project set) are cached per access token for a
few minutes; mutations drop the caller's entries for the touched resource.
Time entries and expenses are never cached.
"""
from __future__ import annotations
import asyncio
import hashlib
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional, Tuple

from portal.config import settings


class TTLCache:
    """Bounded LRU cache with a TTL per entry. Clock: time.monotonic."""

    def __init__(self, maxsize: int = 500):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._maxsize = maxsize
        # value stored as (payload, expires_at)
        self._data: OrderedDict[str, Tuple[Any, float]] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def _get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    def _put(self, key: str, value: Any, ttl: float) -> None:
        if key in self._data:
            del self._data[key]
        elif len(self._data) >= self._maxsize:
            self._data.popitem(last=False)
        self._data[key] = (value, time.monotonic() + ttl)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return self._get(key)

    async def put(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        async with self._lock:
            self._put(key, value, ttl)

    async def invalidate(self, prefix: str) -> int:
        """Drop every key starting with prefix. Returns how many were removed."""
        async with self._lock:
            stale = [k for k in self._data if k.startswith(prefix)]
            for key in stale:
                del self._data[key]
            return len(stale)

    async def purge_expired(self) -> int:
        now = time.monotonic()
        async with self._lock:
            stale = [k for k, (_, expires_at) in self._data.items() if now >= expires_at]
            for key in stale:
                del self._data[key]
            return len(stale)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()


def token_scope(access_token: str) -> str:
    """Cache namespace for one access token; the raw token never becomes a key."""
    return hashlib.sha256(access_token.encode()).hexdigest()[:32]


def cache_key(access_token: str, resource: str, *parts: Any) -> str:
    suffix = ":".join(str(p) for p in parts)
    return f"{token_scope(access_token)}:{resource}:{suffix}"


async def cached(
    access_token: str,
    resource: str,
    ttl: float,
    fetch: Callable[[], Awaitable[Any]],
    *parts: Any,
) -> Any:
    key = cache_key(access_token, resource, *parts)
    hit = await response_cache.get(key)
    if hit is not None:
        return hit
    value = await fetch()
    await response_cache.put(key, value, ttl)
    return value


async def invalidate(access_token: str, resource: str) -> int:
    return await response_cache.invalidate(f"{token_scope(access_token)}:{resource}:")


response_cache = TTLCache(maxsize=settings.CACHE_MAX_ENTRIES)
