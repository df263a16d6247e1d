"""
Caching utilities for expensive aggregate queries
Uses Redis when configured, falls back to whatever cache backend is active
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
COVERAGE_CACHE_TTL = 120  # 2 minutes
REVIEW_PROGRESS_CACHE_TTL = 60  # 1 minute


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="library_coverage")
        def get_expensive_data(library_id):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Note: This requires Redis with SCAN command support
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")

        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def coverage_cache_key(library_id):
    return make_cache_key("library_coverage", library_id)


def invalidate_coverage_cache(library_id):
    """Drop the cached coverage of one library"""
    cache.delete(coverage_cache_key(library_id))
    logger.debug(f"Invalidated coverage cache for library {library_id}")


def invalidate_all_coverage():
    """Catalog edits (gender, product type) can shift every library's coverage"""
    invalidate_cache_pattern("library_coverage")
    logger.info("Invalidated coverage cache for all libraries")


def review_progress_cache_key(job_id):
    return make_cache_key("review_progress", job_id)


def invalidate_review_progress(job_id):
    cache.delete(review_progress_cache_key(job_id))
