"""
Identity-driven upkeep of the local scan state.

Called by the UI when the session changes (sign in, sign out, view focus)
and from the settings screen (clear remote history, clear app cache).
"""

import logging
from typing import List, Optional

from labelscan.services.allergen_matcher import UserAllergyProfile
from labelscan.services.errors import RemoteStoreError
from labelscan.services.history_store import BoundedHistory, ScanRecord
from labelscan.services.notification_counter import NotificationCounter
from labelscan.services.remote_store.base import RemoteScanStore

logger = logging.getLogger(__name__)


class SessionService:
    def __init__(
        self,
        history: BoundedHistory[ScanRecord],
        notifications: NotificationCounter,
        remote_store: Optional[RemoteScanStore] = None,
    ):
        self.history = history
        self.notifications = notifications
        self.remote_store = remote_store

    def load_profile(self, identity: Optional[str]) -> UserAllergyProfile:
        """
        Load the allergy profile for an identity.

        Anonymous sessions and remote failures yield an unconfigured profile.
        """
        if identity is None or self.remote_store is None:
            return UserAllergyProfile(identity=identity)
        try:
            raw = self.remote_store.fetch_allergies(identity)
        except RemoteStoreError as e:
            logger.error("Could not load allergy profile for %s: %s", identity, e)
            return UserAllergyProfile(identity=identity)
        return UserAllergyProfile.from_raw(identity, raw)

    def sync_history(self, identity: Optional[str]) -> List[ScanRecord]:
        """
        Refresh the detailed history for the current identity.

        Signed-in users get their newest remote scans, written through to the
        local cache. If the remote store is unreachable, or the session is
        anonymous, the local cache stands.
        """
        if identity is None or self.remote_store is None:
            return self.history.reload()

        try:
            scans = self.remote_store.fetch_recent_scans(identity, self.history.capacity)
        except RemoteStoreError as e:
            logger.warning("Could not refresh scan history from remote store: %s", e)
            return self.history.load()

        return self.history.replace(scans)

    def sign_out(self) -> None:
        """Forget this device's scan history, notifications and watermark."""
        self.history.clear()
        self.notifications.clear()

    def clear_remote_history(self, identity: Optional[str]) -> int:
        """
        Delete every remote scan for the identity and the local copy of them.

        Raises:
            ValueError: if no user is signed in
            RemoteStoreError: if the remote delete failed (local state untouched)
        """
        if identity is None:
            raise ValueError("You must be logged in to clear history.")
        if self.remote_store is None:
            raise RemoteStoreError("No remote store configured")
        deleted = self.remote_store.delete_all_scans(identity)
        self.history.clear()
        return deleted

    def clear_app_cache(self) -> None:
        """Drop the cached detailed history and the seen watermark."""
        self.notifications.reset_watermark()
        self.history.clear()
