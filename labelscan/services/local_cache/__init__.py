"""Local durable cache backends."""

from labelscan.config import settings
from labelscan.services.local_cache.base import LocalCache
from labelscan.services.local_cache.memory_cache import MemoryCache
from labelscan.services.local_cache.redis_cache import RedisCache


def get_local_cache(backend: str = None) -> LocalCache:
    """Build the configured cache backend ("redis" or "memory")."""
    backend = (backend or settings.local_cache_backend).lower()
    if backend == "redis":
        return RedisCache()
    if backend == "memory":
        return MemoryCache()
    raise ValueError(f"Unknown local cache backend: {backend}")


__all__ = ["LocalCache", "MemoryCache", "RedisCache", "get_local_cache"]
