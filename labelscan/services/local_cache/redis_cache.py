"""Redis-backed local cache."""
import logging
from typing import Iterable, Optional

import redis

from labelscan.config import settings
from labelscan.services.errors import LocalStorageError
from labelscan.services.local_cache.base import LocalCache

logger = logging.getLogger(__name__)


class RedisCache(LocalCache):
    """Stores every key under a namespace prefix in a single Redis database."""

    def __init__(self, client: Optional[redis.Redis] = None, namespace: Optional[str] = None):
        self.redis = client if client is not None else redis.from_url(settings.redis_url)
        self.namespace = settings.local_cache_namespace if namespace is None else namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(self._key(key))
        except redis.RedisError as e:
            raise LocalStorageError(f"Could not read {key}: {e}", key=key) from e
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def set(self, key: str, value: str) -> None:
        try:
            self.redis.set(self._key(key), value)
        except redis.RedisError as e:
            raise LocalStorageError(f"Could not write {key}: {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            self.redis.delete(self._key(key))
        except redis.RedisError as e:
            raise LocalStorageError(f"Could not remove {key}: {e}", key=key) from e

    def multi_remove(self, keys: Iterable[str]) -> None:
        keys = list(keys)
        if not keys:
            return
        try:
            # DEL with several keys is atomic in Redis
            self.redis.delete(*[self._key(k) for k in keys])
        except redis.RedisError as e:
            raise LocalStorageError(f"Could not remove {keys}: {e}") from e
