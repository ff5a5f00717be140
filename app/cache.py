"""
Redis cache for dashboard aggregates

Summaries are polled by every open dashboard, so they are kept in Redis for a
short TTL and dropped whenever a booking, milestone or task changes. A missing
or failing Redis behaves like an empty cache.
"""
import json
import logging
from typing import Any, Optional

from .config import CACHE_ENABLED, SUMMARY_CACHE_TTL
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

ANALYTICS_PREFIX = "analytics"


class Cache:
    """JSON values in Redis under a common key prefix"""

    def __init__(self, enabled: bool = True, prefix: str = ANALYTICS_PREFIX):
        self.enabled = enabled
        self.prefix = prefix
        self._client = None

    def key(self, *parts: str) -> str:
        return ":".join((self.prefix, *parts))

    def client(self):
        if not self.enabled:
            return None
        if self._client is None:
            try:
                self._client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self._client

    def get(self, key: str) -> Optional[Any]:
        client = self.client()
        if client is None:
            return None
        try:
            raw = client.get(key)
        except Exception as e:
            logger.error(f"❌ Cache read failed for {key}: {e}")
            return None
        logger.debug(f"{'✅ HIT' if raw else '❌ MISS'} {key}")
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, ttl: int) -> bool:
        client = self.client()
        if client is None:
            return False
        try:
            client.setex(key, ttl, json.dumps(value, default=str))
        except Exception as e:
            logger.error(f"❌ Cache write failed for {key}: {e}")
            return False
        return True

    def clear(self) -> int:
        """Delete every key under this cache's prefix"""
        client = self.client()
        if client is None:
            return 0
        try:
            keys = list(client.scan_iter(match=self.key("*")))
            deleted = client.delete(*keys) if keys else 0
        except Exception as e:
            logger.error(f"❌ Cache clear failed for {self.prefix}: {e}")
            return 0
        if deleted:
            logger.debug(f"🧹 Dropped {deleted} cached {self.prefix} entries")
        return deleted


cache = Cache(enabled=CACHE_ENABLED)


def build_summary_key(user_id: str) -> str:
    return cache.key("summary", user_id)


def get_cached_summary(user_id: str) -> Optional[dict]:
    return cache.get(build_summary_key(user_id))


def cache_summary(user_id: str, summary: dict) -> bool:
    return cache.set(build_summary_key(user_id), summary, SUMMARY_CACHE_TTL)


def invalidate_analytics_cache() -> int:
    """Drop every cached dashboard aggregate.

    Summaries are scoped per user, and an admin's summary covers every
    booking, so a single write can stale many keys.
    """
    return cache.clear()
