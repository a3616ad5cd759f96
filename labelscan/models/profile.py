from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from labelscan.database import Base
from labelscan.models.scan import JsonType


class Profile(Base):
    """Public profile row; only the allergy configuration is used here."""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    username = Column(String(255))
    full_name = Column(String(255))
    avatar_url = Column(String(512))
    allergies = Column(JsonType)  # list of names or a comma-separated string
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
