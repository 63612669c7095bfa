"""
Redis caching utilities for the School Inventory service.

Caches catalog listings to spare the database on the busiest page. Any
operation that changes titles or quantities must call ``invalidate_catalog``.
"""
import json
import logging
from typing import Optional, Any
import redis
from functools import wraps

from .config import REDIS_URL, LIST_CACHE_TTL

logger = logging.getLogger(__name__)

CATALOG_PREFIX = "items"

# Initialize Redis client (None disables caching)
redis_client = redis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None


def get_cache(key: str) -> Optional[Any]:
    """
    Get a value from Redis cache.

    Args:
        key: Cache key

    Returns:
        Cached value or None if not found
    """
    if redis_client is None:
        return None
    try:
        value = redis_client.get(key)
        if value:
            return json.loads(value)
        return None
    except (redis.RedisError, ValueError) as e:
        logger.warning(f"Cache get error: {e}")
        return None

def set_cache(key: str, value: Any, ttl: int = LIST_CACHE_TTL) -> bool:
    """
    Set a value in Redis cache with TTL.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time to live in seconds

    Returns:
        True if successful, False otherwise
    """
    if redis_client is None:
        return False
    try:
        redis_client.setex(key, ttl, json.dumps(value))
        return True
    except (redis.RedisError, TypeError) as e:
        logger.warning(f"Cache set error: {e}")
        return False

def delete_pattern(pattern: str) -> bool:
    """
    Delete all keys matching a pattern.

    Args:
        pattern: Pattern to match (e.g., "items:*")

    Returns:
        True if successful, False otherwise
    """
    if redis_client is None:
        return False
    try:
        keys = redis_client.keys(pattern)
        if keys:
            redis_client.delete(*keys)
        return True
    except redis.RedisError as e:
        logger.warning(f"Cache delete pattern error: {e}")
        return False

def invalidate_catalog() -> bool:
    """Drop every cached catalog listing."""
    return delete_pattern(f"{CATALOG_PREFIX}:*")

def cache_result(key_prefix: str, ttl: int = LIST_CACHE_TTL):
    """
    Decorator to cache JSON-serializable function results.

    The cache key is built from the keyword arguments (except the ``db``
    session), so decorated functions should be called with keywords only.

    Args:
        key_prefix: Prefix for the cache key
        ttl: Time to live in seconds

    Example:
        @cache_result("items")
        def list_items(*, db, keyword=None, skip=0, limit=100):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(**kwargs):
            cache_key = f"{key_prefix}:" + ":".join(
                f"{k}={kwargs[k]}" for k in sorted(kwargs) if k != "db"
            )

            # Try to get from cache
            cached = get_cache(cache_key)
            if cached is not None:
                return cached

            # Execute function and cache result
            result = func(**kwargs)
            if result is not None:
                set_cache(cache_key, result, ttl)

            return result
        return wrapper
    return decorator
