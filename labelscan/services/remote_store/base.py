"""Abstract base class for the remote (per-account) scan store."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Union

from labelscan.services.history_store import ScanRecord


class RemoteScanStore(ABC):
    """
    Account-scoped scan storage.

    Implementations raise RemoteStoreError for any backend failure; callers
    decide whether that is fatal (it never is for a scan).
    """

    @abstractmethod
    def insert_scan(
        self,
        user_id: str,
        text: str,
        allergens: List[str],
        timestamp: datetime,
        image_ref: Optional[str] = None,
    ) -> str:
        """
        Save a scan and return the server-assigned id.
        """
        pass

    @abstractmethod
    def fetch_recent_scans(self, user_id: str, limit: int) -> List[ScanRecord]:
        """
        Return the user's newest scans, newest first.
        """
        pass

    @abstractmethod
    def delete_all_scans(self, user_id: str) -> int:
        """
        Delete every scan for the user. Returns the number deleted.
        """
        pass

    @abstractmethod
    def fetch_allergies(self, user_id: str) -> Union[List[str], str, None]:
        """
        Return the raw allergy configuration from the user's profile.
        """
        pass
