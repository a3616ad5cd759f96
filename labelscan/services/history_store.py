"""
Bounded, insertion-ordered scan histories kept in the local cache.

Two independent instances share one implementation:
- the detailed per-device scan history (ScanRecord, default cap 10)
- the notification feed behind the bell icon (NotificationFeedEntry, default cap 20)

Entries are held newest-first. Prepending beyond the cap silently drops the
oldest entries. Every mutation updates memory first, then writes the whole
list through to the cache; if that write fails the in-memory list stays
authoritative for the session and LocalStorageError is raised to the caller.
"""

import logging
import re
import threading
from datetime import datetime, timezone
from typing import Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, computed_field

from labelscan.config import settings
from labelscan.services.errors import LocalStorageError
from labelscan.services.local_cache.base import LocalCache

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local_"


class ScanRecord(BaseModel):
    """One completed scan. Immutable once created; only ever evicted."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    image_ref: Optional[str] = None
    timestamp: datetime
    allergens: List[str] = []

    @computed_field
    @property
    def detected(self) -> bool:
        return len(self.allergens) > 0

    @property
    def is_local_only(self) -> bool:
        return self.id.startswith(LOCAL_ID_PREFIX)


class NotificationFeedEntry(BaseModel):
    """Lightweight entry powering the notification bell."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    scanned_at: datetime


_NEWLINES = re.compile(r"\r\n|\r|\n")


def feed_display_name(text: str, max_length: Optional[int] = None) -> str:
    """
    Derive a one-line display name from scanned text.

    Newlines collapse to single spaces; anything longer than max_length is
    cut and ends with "..." so the result never exceeds max_length.
    """
    max_length = max_length or settings.feed_name_max_length
    name = _NEWLINES.sub(" ", text)
    if len(name) > max_length:
        name = name[: max_length - 3] + "..."
    return name


def feed_entry_for(record: ScanRecord) -> NotificationFeedEntry:
    return NotificationFeedEntry(
        id=record.id,
        name=feed_display_name(record.text),
        scanned_at=record.timestamp,
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


T = TypeVar("T", bound=BaseModel)


class BoundedHistory(Generic[T]):
    """Fixed-capacity, newest-first list persisted under one cache key."""

    def __init__(self, cache: LocalCache, key: str, capacity: int, entry_type: Type[T]):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.cache = cache
        self.key = key
        self.capacity = capacity
        self.entry_type = entry_type
        self._adapter = TypeAdapter(List[entry_type])
        self._entries: Optional[List[T]] = None
        # One writer at a time per store; the two stores never share a lock
        self.lock = threading.RLock()

    def __len__(self) -> int:
        return len(self.load())

    def _read(self) -> List[T]:
        try:
            raw = self.cache.get(self.key)
        except LocalStorageError as e:
            logger.warning("Could not read %s from local cache: %s", self.key, e)
            return []
        if not raw:
            return []
        try:
            entries = self._adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable %s cache entry: %s", self.key, e)
            return []
        return entries[: self.capacity]

    def _write(self) -> None:
        try:
            self.cache.set(self.key, self._adapter.dump_json(self._entries).decode("utf-8"))
        except LocalStorageError:
            logger.error(
                "Local cache write failed for %s; keeping %d entries in memory only",
                self.key,
                len(self._entries),
            )
            raise

    def load(self) -> List[T]:
        """Return entries newest-first, reading the cache on first use."""
        with self.lock:
            if self._entries is None:
                self._entries = self._read()
            return list(self._entries)

    def reload(self) -> List[T]:
        """Drop the in-memory copy and re-read the cache."""
        with self.lock:
            self._entries = None
            return self.load()

    def prepend(self, entry: T) -> List[T]:
        """Insert entry as newest, evicting from the tail beyond capacity."""
        with self.lock:
            entries = [entry] + self.load()
            evicted = entries[self.capacity :]
            self._entries = entries[: self.capacity]
            if evicted:
                logger.debug("Evicted %d entries from %s", len(evicted), self.key)
            self._write()
            return list(self._entries)

    def replace(self, entries: Iterable[T]) -> List[T]:
        """Replace the whole list (newest-first), truncated to capacity."""
        with self.lock:
            self._entries = list(entries)[: self.capacity]
            self._write()
            return list(self._entries)

    def clear(self, extra_keys: Iterable[str] = ()) -> None:
        """
        Empty the store, removing any extra_keys in the same cache operation.

        Memory is only cleared once the cache removal succeeded, so callers
        never observe the store cleared while the extra keys survive.
        """
        with self.lock:
            keys = [self.key, *extra_keys]
            if len(keys) == 1:
                self.cache.remove(self.key)
            else:
                self.cache.multi_remove(keys)
            self._entries = []


def create_scan_history(cache: LocalCache) -> BoundedHistory[ScanRecord]:
    return BoundedHistory(
        cache, settings.history_cache_key, settings.history_capacity, ScanRecord
    )


def create_notification_feed(cache: LocalCache) -> BoundedHistory[NotificationFeedEntry]:
    return BoundedHistory(
        cache,
        settings.notification_feed_key,
        settings.notification_feed_capacity,
        NotificationFeedEntry,
    )
