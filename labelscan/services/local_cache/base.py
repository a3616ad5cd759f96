"""Abstract key/value cache backing the rolling stores and the watermark."""
from abc import ABC, abstractmethod
from typing import Iterable, Optional


class LocalCache(ABC):
    """
    Durable string key/value storage local to one device.

    Implementations raise LocalStorageError for any backend failure so the
    bounded stores can keep serving in-memory state for the session.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass

    @abstractmethod
    def multi_remove(self, keys: Iterable[str]) -> None:
        """Remove several keys in one operation; all or nothing."""
        pass
