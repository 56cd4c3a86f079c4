"""
Cache utilities for the Lights Out League
Caches leaderboard pages between recomputes
"""

import functools

from flask import current_app, request

from lightsout import cache

LEADERBOARD_PREFIX = "leaderboard"


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query = "_".join(f"{k}_{v}" for k, v in sorted(request.args.items()))
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query}_{args_str}_{kwargs_str}".replace("/", "_")


def _generation(key_prefix):
    # Bumping the generation orphans every key cached under the old one
    return cache.get(f"{key_prefix}_generation") or 0


def cached_route(timeout=300, key_prefix="view"):
    """
    Decorator for caching route responses

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = (
                f"{key_prefix}_{_generation(key_prefix)}_"
                f"{make_cache_key(*args, **kwargs)}"
            )

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_leaderboard_cache():
    """Drop every cached leaderboard page"""
    try:
        key = f"{LEADERBOARD_PREFIX}_generation"
        cache.set(key, _generation(LEADERBOARD_PREFIX) + 1, timeout=0)
        current_app.logger.debug("Leaderboard cache invalidated")
    except Exception as e:
        # A stale page expires on its own; never fail a committed recompute
        current_app.logger.error(f"Failed to invalidate leaderboard cache: {e}")
