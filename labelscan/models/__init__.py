"""
Database models for the remote scan store.
"""

from labelscan.database import Base
from labelscan.models.profile import Profile
from labelscan.models.scan import UserScanHistory

__all__ = [
    "Base",
    "Profile",
    "UserScanHistory",
]
