"""Tool result caching."""

from __future__ import annotations

from lexagent.cache.tool_cache import (
    CacheEntry,
    InMemoryToolResultCache,
    ToolResultCache,
    cache_key,
    canonical_params,
)
from lexagent.config import Settings


def build_cache(settings: Settings) -> ToolResultCache:
    """Create the configured process-wide cache."""

    if settings.redis_enabled:
        from lexagent.cache.redis_cache import RedisToolResultCache

        return RedisToolResultCache(redis_url=settings.redis_url, key_prefix=settings.redis_key_prefix)
    return InMemoryToolResultCache()


__all__ = [
    "CacheEntry",
    "InMemoryToolResultCache",
    "ToolResultCache",
    "build_cache",
    "cache_key",
    "canonical_params",
]
