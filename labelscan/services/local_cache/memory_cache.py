"""Process-local cache for offline/anonymous sessions and tests."""
import threading
from typing import Dict, Iterable, Optional

from labelscan.services.local_cache.base import LocalCache


class MemoryCache(LocalCache):
    """Dictionary-backed cache; contents do not survive a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def multi_remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)
