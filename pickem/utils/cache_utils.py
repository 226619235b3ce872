"""
Cache utilities for the Pick'em application

Wraps Flask-Caching with payload caching and invalidation by key, by tag,
by week+season and by game. Tags are tracked as key lists stored in the
cache itself so the facade works on any Flask-Caching backend.
"""

import functools

from flask import current_app

from pickem import cache

TAG_PREFIX = "tag:"
GAMES_TAG = "games"
LEADERBOARD_TAG = "leaderboard"
TEAMS_TAG = "teams"


def week_tag(week, season):
    return f"week:{season}:{week}"


def game_tag(game_id):
    return f"game:{game_id}"


def _tag_key(tag):
    return f"{TAG_PREFIX}{tag}"


def make_cache_key(key_prefix, *args, **kwargs):
    """Generate a cache key from a prefix and call arguments"""
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{key_prefix}_{args_str}_{kwargs_str}"


def register_tags(cache_key, tags):
    """Remember that cache_key belongs to each of tags"""
    for tag in tags:
        keys = cache.get(_tag_key(tag)) or []
        if cache_key not in keys:
            keys.append(cache_key)
            cache.set(_tag_key(tag), keys, timeout=0)


def cached_payload(key_prefix, timeout=300, tags=None):
    """
    Decorator for caching JSON-serialisable payloads built by a function

    Args:
        key_prefix: Prefix for cache key generation
        timeout: Cache timeout in seconds
        tags: List of tags, or a callable receiving the call arguments and
              returning the list of tags for that entry
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)

            entry_tags = tags(*args, **kwargs) if callable(tags) else (tags or [])
            register_tags(cache_key, entry_tags)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_key(key):
    """Invalidate a single cache key"""
    cache.delete(key)
    current_app.logger.info(f"Cache key '{key}' invalidated")


def invalidate_by_tags(tags):
    """Invalidate every entry registered under any of tags; returns the count"""
    removed = 0
    for tag in tags:
        keys = cache.get(_tag_key(tag)) or []
        if keys:
            cache.delete_many(*keys)
            removed += len(keys)
        cache.delete(_tag_key(tag))

    current_app.logger.info(f"Cache entries with tags {list(tags)} invalidated ({removed})")
    return removed


def invalidate_week(week, season):
    return invalidate_by_tags([week_tag(week, season)])


def invalidate_game(game_id):
    return invalidate_by_tags([game_tag(game_id)])


def invalidate_pick_views(game):
    """Drop cached views affected by a pick change on game"""
    return invalidate_by_tags(
        [week_tag(game.week, game.season), game_tag(game.id), LEADERBOARD_TAG]
    )


def clear_all():
    cache.clear()
    current_app.logger.info("All cache data cleared")


def get_cache_stats():
    """Get cache statistics"""
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
        "key_prefix": current_app.config.get("CACHE_KEY_PREFIX"),
        "tags": {
            tag: len(cache.get(_tag_key(tag)) or [])
            for tag in (GAMES_TAG, LEADERBOARD_TAG, TEAMS_TAG)
        },
    }
