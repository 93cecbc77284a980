"""
Simple in-memory TTL cache.

Used for read-mostly data: status history (append-only, invalidated on
every write to the job) and workshop settings (invalidated on update).
"""
import time
from typing import Optional, Any
import logging

logger = logging.getLogger(__name__)


class SimpleCache:
    """
    In-memory key-value cache with per-entry TTL.

    - Expiry checked on read
    - Manual invalidation by key
    - Full clear

    Usage:
        cache = SimpleCache()
        cache.set("history:J-1", entries, ttl_seconds=300)
        cache.get("history:J-1")         # None if expired or missing
        cache.invalidate("history:J-1")  # after a write
    """

    def __init__(self):
        self._cache: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value if present and not expired.

        Example:
            >>> cache = SimpleCache()
            >>> cache.set("foo", "bar", ttl_seconds=60)
            >>> cache.get("foo")
            'bar'
        """
        entry = self._cache.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if time.monotonic() < expires_at:
            logger.debug(f"Cache hit: {key}")
            return value

        del self._cache[key]
        logger.debug(f"Cache expired: {key}")
        return None

    def set(self, key: str, value: Any, ttl_seconds: int):
        """Store a value for ttl_seconds."""
        self._cache[key] = (value, time.monotonic() + ttl_seconds)
        logger.debug(f"Cache set: {key} (TTL: {ttl_seconds}s)")

    def invalidate(self, key: str):
        """Drop one key (no-op when missing)."""
        if self._cache.pop(key, None) is not None:
            logger.debug(f"Cache invalidated: {key}")

    def clear(self):
        """Remove every entry (testing, restart)."""
        count = len(self._cache)
        self._cache.clear()
        logger.info(f"Cache cleared ({count} entries removed)")


# Process-wide instance shared by the FastAPI wiring
_cache = SimpleCache()


def get_cache() -> SimpleCache:
    """Return the process-wide cache instance."""
    return _cache
