"""
Cache utilities for Gameweek Pick'em
Provides a caching decorator for query results and invalidation helpers
"""

import functools
import logging

from flask import current_app

from pickem import cache

logger = logging.getLogger(__name__)


def make_cache_key(model_name, func_name, *args, **kwargs):
    """Generate a cache key from the model, function and arguments"""
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"query_{model_name}_{func_name}_{args_str}_{kwargs_str}"


def cached_query(model_name, timeout=300, timeout_key=None):
    """
    Decorator for caching database query results

    Args:
        model_name: Name of the model for cache key generation
        timeout: Cache timeout in seconds
        timeout_key: App config key that overrides timeout when set
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = make_cache_key(model_name, f.__name__, *args, **kwargs)
            ttl = current_app.config.get(timeout_key, timeout) if timeout_key else timeout

            # Try to get from cache
            result = cache.get(cache_key)
            if result is not None:
                logger.debug(f"Query cache hit: {cache_key}")
                return result

            # Execute query and cache result
            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=ttl)
            logger.debug(f"Query cache set: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate cache keys matching a pattern

    Args:
        pattern: Pattern to match cache keys
    """
    try:
        # SimpleCache can't enumerate keys, so the whole cache goes
        cache.clear()
        logger.info(f"Cache cleared for pattern: {pattern}")
    except Exception as e:
        logger.error(f"Failed to clear cache: {e}")


def invalidate_model_cache(model_name):
    """
    Invalidate all cache entries for a specific model

    Args:
        model_name: Name of the model to invalidate
    """
    invalidate_cache_pattern(f"*{model_name}*")
