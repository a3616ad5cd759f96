"""
Unseen/seen state for the notification feed.

The watermark is the feed length the user has already seen. The bell shows
new activity while the feed is longer than the watermark.
"""

import logging
import threading
from typing import List, Optional

from labelscan.config import settings
from labelscan.services.errors import LocalStorageError
from labelscan.services.history_store import BoundedHistory, NotificationFeedEntry
from labelscan.services.local_cache.base import LocalCache

logger = logging.getLogger(__name__)


class NotificationCounter:
    """Feed plus persisted watermark."""

    def __init__(
        self,
        feed: BoundedHistory[NotificationFeedEntry],
        cache: LocalCache,
        watermark_key: Optional[str] = None,
    ):
        self.feed = feed
        self.cache = cache
        self.watermark_key = watermark_key or settings.watermark_key
        self._watermark: Optional[int] = None
        self._lock = threading.RLock()

    def _read_watermark(self) -> int:
        try:
            raw = self.cache.get(self.watermark_key)
        except LocalStorageError as e:
            logger.warning("Could not read notification watermark: %s", e)
            return 0
        if raw is None:
            return 0
        try:
            return max(0, int(raw))
        except ValueError:
            logger.warning("Ignoring invalid notification watermark %r", raw)
            return 0

    def _store_watermark(self, value: int) -> None:
        self._watermark = value
        self.cache.set(self.watermark_key, str(value))

    @property
    def watermark(self) -> int:
        with self._lock:
            if self._watermark is None:
                self._watermark = self._read_watermark()
            return self._watermark

    @property
    def has_unseen(self) -> bool:
        return len(self.feed.load()) > self.watermark

    @property
    def unseen_count(self) -> int:
        return max(0, len(self.feed.load()) - self.watermark)

    def record(self, entry: NotificationFeedEntry) -> List[NotificationFeedEntry]:
        """
        Prepend an entry to the feed.

        When the feed is full, entries the user had already seen get evicted;
        the watermark moves down by the same amount so the new entry still
        counts as unseen.
        """
        with self._lock, self.feed.lock:
            before = len(self.feed.load())
            try:
                entries = self.feed.prepend(entry)
            finally:
                evicted = before + 1 - len(self.feed.load())
                if evicted > 0 and self.watermark > 0:
                    try:
                        self._store_watermark(max(0, self.watermark - evicted))
                    except LocalStorageError as e:
                        logger.error("Could not persist shifted watermark: %s", e)
            return entries

    def mark_seen(self) -> int:
        """Set the watermark to the current feed length. Idempotent."""
        with self._lock:
            length = len(self.feed.load())
            if length != self.watermark:
                self._store_watermark(length)
            return length

    def reset_watermark(self) -> None:
        """Forget which entries were seen, without touching the feed."""
        with self._lock:
            self.cache.remove(self.watermark_key)
            self._watermark = 0

    def clear(self) -> None:
        """
        Empty the feed and reset the watermark to zero together.

        Both keys go in one cache removal; if it fails neither the feed nor
        the watermark changes and LocalStorageError propagates.
        """
        with self._lock:
            self.feed.clear(extra_keys=[self.watermark_key])
            self._watermark = 0
