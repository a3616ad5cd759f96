"""
Durable write of a completed scan.

Authenticated scans are first inserted remotely; the server id becomes the
record id. Anonymous scans, and scans whose remote insert failed, get a local
id instead. Either way the record is prepended to the detailed history and a
feed entry is prepended to the notification feed. The feed write happens even
when the remote insert or the history write failed.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from labelscan.services.errors import LocalStorageError, RemoteStoreError
from labelscan.services.history_store import (
    LOCAL_ID_PREFIX,
    BoundedHistory,
    NotificationFeedEntry,
    ScanRecord,
    feed_entry_for,
    utcnow,
)
from labelscan.services.notification_counter import NotificationCounter
from labelscan.services.remote_store.base import RemoteScanStore

logger = logging.getLogger(__name__)


def new_local_id() -> str:
    """Local record id: never collides with server ids, which carry no prefix."""
    return f"{LOCAL_ID_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class Written:
    """Saved remotely; the record carries the server id."""

    remote_id: str

    @property
    def record_id(self) -> str:
        return self.remote_id


@dataclass(frozen=True)
class WrittenLocalOnly:
    """Saved on this device only (anonymous, or the remote insert failed)."""

    local_id: str
    remote_error: Optional[str] = None

    @property
    def record_id(self) -> str:
        return self.local_id


WriteResult = Union[Written, WrittenLocalOnly]


@dataclass
class PersistenceResult:
    write: WriteResult
    record: ScanRecord
    feed_entry: NotificationFeedEntry
    history: List[ScanRecord]
    feed: List[NotificationFeedEntry]
    storage_errors: List[LocalStorageError] = field(default_factory=list)

    @property
    def durable(self) -> bool:
        """False when some local write will not survive a restart."""
        return not self.storage_errors


class ScanPersistenceCoordinator:
    """Writes scans to the remote store (when signed in) and the local caches."""

    def __init__(
        self,
        history: BoundedHistory[ScanRecord],
        notifications: NotificationCounter,
        remote_store: Optional[RemoteScanStore] = None,
    ):
        self.history = history
        self.notifications = notifications
        self.remote_store = remote_store

    def _write_remote(
        self,
        identity: Optional[str],
        text: str,
        allergens: List[str],
        timestamp: datetime,
        image_ref: Optional[str],
    ) -> WriteResult:
        if identity is None:
            return WrittenLocalOnly(local_id=new_local_id())
        if self.remote_store is None:
            logger.warning("No remote store configured; saving scan locally only")
            return WrittenLocalOnly(local_id=new_local_id(), remote_error="no remote store")

        try:
            remote_id = self.remote_store.insert_scan(
                user_id=identity,
                text=text,
                allergens=allergens,
                timestamp=timestamp,
                image_ref=image_ref,
            )
        except RemoteStoreError as e:
            logger.error("Could not save scan for user %s, keeping it local: %s", identity, e)
            return WrittenLocalOnly(local_id=new_local_id(), remote_error=str(e))
        return Written(remote_id=remote_id)

    def persist(
        self,
        text: str,
        image_ref: Optional[str],
        allergens: List[str],
        identity: Optional[str],
        timestamp: Optional[datetime] = None,
    ) -> PersistenceResult:
        """
        Save a finalized scan. Never raises for storage failures.

        Cache write failures are collected in `storage_errors`; the in-memory
        lists still reflect the new scan for the rest of the session.
        """
        timestamp = timestamp or utcnow()
        write = self._write_remote(identity, text, allergens, timestamp, image_ref)

        record = ScanRecord(
            id=write.record_id,
            text=text,
            image_ref=image_ref,
            timestamp=timestamp,
            allergens=list(allergens),
        )
        feed_entry = feed_entry_for(record)
        storage_errors: List[LocalStorageError] = []

        try:
            self.history.prepend(record)
        except LocalStorageError as e:
            storage_errors.append(e)

        try:
            self.notifications.record(feed_entry)
        except LocalStorageError as e:
            storage_errors.append(e)

        if storage_errors:
            logger.warning(
                "Scan %s saved in memory only for %d store(s); it will not survive a restart",
                record.id,
                len(storage_errors),
            )

        return PersistenceResult(
            write=write,
            record=record,
            feed_entry=feed_entry,
            history=self.history.load(),
            feed=self.notifications.feed.load(),
            storage_errors=storage_errors,
        )
