import uuid

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from labelscan.database import Base

JsonType = JSON().with_variant(JSONB(), "postgresql")


class UserScanHistory(Base):
    """A scan saved for an authenticated user."""

    __tablename__ = "user_scan_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False)
    scan_data = Column(JsonType, nullable=False)  # {"scanned_text": "..."}
    image_url = Column(String(512))
    detected_allergens = Column(JsonType, nullable=False, default=list)
    scan_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def scanned_text(self) -> str:
        return (self.scan_data or {}).get("scanned_text", "")

    __table_args__ = (
        Index("idx_user_scan_history_user_date", "user_id", "scan_date"),
    )
