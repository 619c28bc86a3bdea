"""Shared TTL state for rate limiting and minted-token reuse."""

from .cache_store import CacheStore, InMemoryCacheStore, RedisCacheStore, create_cache_store

__all__ = ["CacheStore", "InMemoryCacheStore", "RedisCacheStore", "create_cache_store"]
