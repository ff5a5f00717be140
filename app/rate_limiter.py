"""
Per-user fixed-window rate limiting

Windows are counted in process memory and mirrored to Redis every few
seconds, so API workers behind a load balancer converge on one count. When
Redis is down the limiter keeps working from memory alone.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import Depends, HTTPException

from .auth import get_current_user
from .config import (
    RATE_LIMIT_ENABLED,
    REDIS_DB,
    REDIS_HOST,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_SSL,
    REDIS_URL,
)
from .models import Profile

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# {key: {"count": int, "reset_time": epoch seconds, "last_redis_sync": epoch seconds}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

REDIS_SYNC_INTERVAL = 10  # seconds
PRUNE_INTERVAL = 60  # seconds
last_prune_time = 0

CLIENT_OPTIONS = {
    "decode_responses": True,
    "socket_connect_timeout": 5,
    "socket_timeout": 10,
    "retry_on_timeout": True,
    "health_check_interval": 30,
    "max_connections": 20,
}


def get_redis_client() -> redis.Redis:
    """Shared Redis connection for the cache and the limiter (raises if unreachable)"""
    global redis_client

    if redis_client is None:
        if REDIS_URL:
            client = redis.from_url(REDIS_URL, **CLIENT_OPTIONS)
        else:
            client = redis.Redis(
                host=REDIS_HOST,
                port=REDIS_PORT,
                password=REDIS_PASSWORD,
                db=REDIS_DB,
                ssl=REDIS_SSL,
                **CLIENT_OPTIONS,
            )
        try:
            client.ping()
        except redis.RedisError as e:
            logger.error(f"❌ Failed to connect to Redis: {e}")
            raise
        redis_client = client
        logger.info("✅ Redis connected")

    return redis_client


def prune_expired_windows(now: int):
    global last_prune_time
    if now - last_prune_time < PRUNE_INTERVAL:
        return

    with cache_lock:
        expired = [k for k, w in memory_cache.items() if now >= w.get("reset_time", 0)]
        for k in expired:
            del memory_cache[k]
    if expired:
        logger.debug(f"🧹 Pruned {len(expired)} expired rate limit windows")
    last_prune_time = now


def _open_window(key: str, now: int, window_seconds: int, client: Optional[redis.Redis]) -> dict:
    """Start a window, resuming another worker's count from Redis if there is one"""
    count, reset_time = 0, now + window_seconds
    if client is not None:
        try:
            stored, ttl = client.get(key), client.ttl(key)
            if stored and ttl > 0:
                count, reset_time = int(stored), now + ttl
        except redis.RedisError as e:
            logger.warning(f"⚠️ Could not read {key} from Redis, counting in memory: {e}")
    return {"count": count, "reset_time": reset_time, "last_redis_sync": now}


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Count one hit against a fixed window.

    Returns:
        Tuple of (is_allowed, current_count, seconds_until_reset)
    """
    now = int(time.time())
    prune_expired_windows(now)

    with cache_lock:
        window = memory_cache.get(key)
        if window is None:
            window = memory_cache[key] = _open_window(key, now, window_seconds, client)
        elif now >= window["reset_time"]:
            window.update(count=0, reset_time=now + window_seconds, last_redis_sync=0)

        allowed = window["count"] < limit
        if allowed:
            window["count"] += 1

        if client is not None and now - window["last_redis_sync"] >= REDIS_SYNC_INTERVAL:
            try:
                client.set(key, window["count"], ex=window_seconds)
                window["last_redis_sync"] = now
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

        return allowed, window["count"], max(0, window["reset_time"] - now)


def create_user_rate_limiter(limit: int, window_seconds: int, key_prefix: str):
    """
    Dependency that resolves the current user and counts the request.

    Example:
        booking_create_limit = create_user_rate_limiter(20, 3600, "bookings:create")

        @router.post("")
        async def create_booking(..., current_user: Profile = Depends(booking_create_limit)):
    """

    async def rate_limiter(current_user: Profile = Depends(get_current_user)) -> Profile:
        if not RATE_LIMIT_ENABLED:
            return current_user

        try:
            client = get_redis_client()
        except Exception:
            client = None

        key = f"{key_prefix}:{current_user.id}"
        allowed, count, retry_after = check_rate_limit(key, limit, window_seconds, client)
        if not allowed:
            logger.warning(f"🚫 Rate limit exceeded for {key} ({count}/{limit})")
            raise HTTPException(
                status_code=429,
                detail={
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "retry_after": retry_after,
                },
                headers={"Retry-After": str(retry_after)},
            )
        return current_user

    return rate_limiter
