"""
Serving Module

``AnalyticsService`` lives in ``shopify_analytics.serving.analytics``;
it is not re-exported here because the collection service imports the
cache from this package.
"""
from .cache import CacheBackend, MemoryCache, RedisCache, cache_key, create_cache, remember, window_end
from .webhooks import CacheInvalidator

__all__ = [
    "CacheBackend",
    "CacheInvalidator",
    "MemoryCache",
    "RedisCache",
    "cache_key",
    "create_cache",
    "remember",
    "window_end",
]
