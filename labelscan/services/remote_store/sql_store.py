"""SQLAlchemy implementation of the remote scan store."""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from labelscan.database import SessionLocal
from labelscan.models import Profile, UserScanHistory
from labelscan.services.errors import RemoteStoreError
from labelscan.services.history_store import ScanRecord
from labelscan.services.remote_store.base import RemoteScanStore

logger = logging.getLogger(__name__)


def _as_utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class SqlScanStore(RemoteScanStore):
    """Opens one short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def insert_scan(
        self,
        user_id: str,
        text: str,
        allergens: List[str],
        timestamp: datetime,
        image_ref: Optional[str] = None,
    ) -> str:
        db = self.session_factory()
        try:
            row = UserScanHistory(
                user_id=user_id,
                scan_data={"scanned_text": text},
                image_url=image_ref,
                detected_allergens=list(allergens),
                scan_date=timestamp,
            )
            db.add(row)
            db.commit()
            return str(row.id)
        except SQLAlchemyError as e:
            db.rollback()
            raise RemoteStoreError(f"Could not save scan: {e}") from e
        finally:
            db.close()

    def fetch_recent_scans(self, user_id: str, limit: int) -> List[ScanRecord]:
        db = self.session_factory()
        try:
            rows = (
                db.query(UserScanHistory)
                .filter(UserScanHistory.user_id == user_id)
                .order_by(UserScanHistory.scan_date.desc())
                .limit(limit)
                .all()
            )
            return [
                ScanRecord(
                    id=str(row.id),
                    text=row.scanned_text,
                    image_ref=row.image_url,
                    timestamp=_as_utc(row.scan_date),
                    allergens=list(row.detected_allergens or []),
                )
                for row in rows
            ]
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Could not load scans: {e}") from e
        finally:
            db.close()

    def delete_all_scans(self, user_id: str) -> int:
        db = self.session_factory()
        try:
            deleted = (
                db.query(UserScanHistory)
                .filter(UserScanHistory.user_id == user_id)
                .delete(synchronize_session=False)
            )
            db.commit()
            logger.info("Deleted %d scans for user %s", deleted, user_id)
            return deleted
        except SQLAlchemyError as e:
            db.rollback()
            raise RemoteStoreError(f"Could not clear scan history: {e}") from e
        finally:
            db.close()

    def fetch_allergies(self, user_id: str) -> Union[List[str], str, None]:
        db = self.session_factory()
        try:
            profile = db.query(Profile).filter(Profile.id == user_id).first()
            return profile.allergies if profile else None
        except SQLAlchemyError as e:
            raise RemoteStoreError(f"Could not load profile: {e}") from e
        finally:
            db.close()
