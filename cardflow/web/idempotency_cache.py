# cardflow/web/idempotency_cache.py
import asyncio
from cachetools import TTLCache


class IdempotencyCache:
    """In-memory idempotency cache with TTL (RSVP clicks keyed by run id and token)."""

    def __init__(self, ttl_seconds: int = 300, maxsize: int = 10000):
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self._lock = asyncio.Lock()

    async def reserve(self, key: str) -> bool:
        """Return True if key is new and reserved; False if duplicate."""
        async with self._lock:
            if key in self._cache:
                return False
            self._cache[key] = True
            return True

    async def release(self, key: str) -> None:
        """Forget a reservation whose request did not go through."""
        async with self._lock:
            self._cache.pop(key, None)

    def clear(self):
        """Clear all entries from cache (used in tests)."""
        self._cache.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def __len__(self):
        return len(self._cache)
