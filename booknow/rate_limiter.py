"""
Hybrid in-memory + Redis rate limiting utilities

Fixed window counters keyed by action and client IP. Counts live in process
memory and are synced to Redis periodically when Redis is configured, so
several API workers converge on a shared count without a Redis round trip
on every request.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import RATE_LIMITS

logger = logging.getLogger(__name__)

# Redis connection (None = memory only)
redis_client: Optional[redis.Redis] = None
_redis_checked = False

# Format: {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10  # Sync to Redis every 10 seconds
MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds
last_cleanup_time = 0


def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create the Redis client.
    Returns None when neither REDIS_URL nor REDIS_HOST is configured.
    """
    global redis_client, _redis_checked

    if redis_client is None and not _redis_checked:
        _redis_checked = True
        redis_url = os.getenv("REDIS_URL")
        redis_host = os.getenv("REDIS_HOST")

        if not redis_url and not redis_host:
            logger.info("ℹ️ Redis not configured, rate limiting uses process memory only")
            return None

        try:
            if redis_url:
                redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                )
            else:
                redis_client = redis.Redis(
                    host=redis_host,
                    port=int(os.getenv("REDIS_PORT", "6379")),
                    password=os.getenv("REDIS_PASSWORD"),
                    db=int(os.getenv("REDIS_DB", "0")),
                    ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                )
            redis_client.ping()
            logger.info("✅ Redis connected for rate limiting")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis: {str(e)}")
            logger.warning("⚠️ Rate limiting falls back to process memory only")
            redis_client = None

    return redis_client


def reset_rate_limits():
    """Clear all in-memory counters"""
    with cache_lock:
        memory_cache.clear()


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [
            k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

    last_cleanup_time = current_time


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """Check if rate limit is exceeded using hybrid in-memory + Redis approach

    Args:
        key: Counter key for this rate limit
        limit: Maximum number of requests allowed
        window_seconds: Time window in seconds
        client: Redis client instance, or None for memory only

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    try:
        current_time = int(time.time())

        cleanup_expired_cache()

        with cache_lock:
            if key not in memory_cache:
                memory_cache[key] = {
                    "count": 0,
                    "reset_time": current_time + window_seconds,
                    "last_redis_sync": current_time,
                }
                if client is not None:
                    # Pick up a window another worker already started
                    try:
                        redis_count = client.get(key)
                        redis_ttl = client.ttl(key)
                        if redis_count and redis_ttl > 0:
                            memory_cache[key]["count"] = int(redis_count)
                            memory_cache[key]["reset_time"] = current_time + redis_ttl
                    except Exception as e:
                        logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")

            cache_entry = memory_cache[key]

            if current_time >= cache_entry["reset_time"]:
                cache_entry["count"] = 0
                cache_entry["reset_time"] = current_time + window_seconds
                cache_entry["last_redis_sync"] = 0

            is_allowed = cache_entry["count"] < limit
            if is_allowed:
                cache_entry["count"] += 1

            if client is not None:
                time_since_sync = current_time - cache_entry.get("last_redis_sync", 0)
                if time_since_sync >= MEMORY_CACHE_SYNC_INTERVAL:
                    try:
                        ttl_left = max(1, cache_entry["reset_time"] - current_time)
                        client.set(key, cache_entry["count"], ex=ttl_left)
                        cache_entry["last_redis_sync"] = current_time
                        logger.debug(f"📡 Synced {key} to Redis: {cache_entry['count']}/{limit}")
                    except Exception as e:
                        logger.warning(f"⚠️ Failed to sync to Redis: {e}")

            ttl = cache_entry["reset_time"] - current_time
            return is_allowed, cache_entry["count"], max(0, ttl)

    except Exception as e:
        logger.error(f"❌ Rate limit check failed: {str(e)}")
        # Fail closed for security - deny request if rate limiting fails
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        return False, limit, 0


def get_client_ip(request: Request) -> str:
    """
    Resolve the client IP, preferring proxy headers:
    CF-Connecting-IP, first X-Forwarded-For entry, X-Real-IP, then the socket peer.
    """
    cf_ip = request.headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_action_limit(action: str) -> tuple[int, int]:
    return RATE_LIMITS.get(action, RATE_LIMITS["default"])


async def rate_limit_dependency(request: Request, action: str):
    """
    FastAPI dependency for per-IP, per-action rate limiting.

    Stores the counters on request.state; the rate limit header middleware
    copies them onto the response.
    """
    limit, window_seconds = get_action_limit(action)
    client_ip = get_client_ip(request)
    key = f"booknow_rate_limit:{action}:{client_ip}"

    try:
        is_allowed, current_count, ttl = check_rate_limit(
            key, limit, window_seconds, get_redis_client()
        )
    except Exception as e:
        logger.error(f"❌ Rate limiting error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    reset_at = int(time.time()) + ttl

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "code": "rate_limit_exceeded",
                "message": "Too many requests. Please try again later.",
                "retry_after": ttl,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={
                "Retry-After": str(ttl),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(reset_at),
            },
        )

    request.state.rate_limit_limit = limit
    request.state.rate_limit_remaining = max(0, limit - current_count)
    request.state.rate_limit_reset = reset_at


def create_rate_limiter(action: str):
    """
    Create a rate limiter dependency for an action listed in RATE_LIMITS

    Example usage:
        @router.post("/bookings")
        async def create_booking(
            data: BookingCreate,
            _: None = Depends(create_rate_limiter("booking_create")),
        ):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, action)

    return rate_limiter
