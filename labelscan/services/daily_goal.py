"""Daily scan goal: how many history entries fall on today's local calendar day."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from labelscan.config import settings
from labelscan.services.history_store import ScanRecord

logger = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str] = None) -> Optional[tzinfo]:
    """
    Resolve an IANA name to a tzinfo; None means the host's local time.

    Unknown names fall back to host local time.
    """
    name = name or settings.local_timezone
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using host local time", name)
        return None


def start_of_today(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> datetime:
    """Local midnight (00:00:00) of the day containing `now`, timezone-aware."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local_now = now.astimezone(tz) if tz is not None else now.astimezone()
    return local_now.replace(hour=0, minute=0, second=0, microsecond=0)


def _aware(ts: datetime) -> datetime:
    # Stored timestamps without an offset were written in UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def count_today(
    history: Iterable[ScanRecord],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> int:
    """Entries timestamped at or after local midnight; midnight itself counts."""
    boundary = start_of_today(now, tz)
    return sum(1 for record in history if _aware(record.timestamp) >= boundary)


@dataclass(frozen=True)
class DailyProgress:
    count: int
    goal: int

    @property
    def percent(self) -> float:
        if self.goal <= 0:
            return 100.0
        return min(100.0, self.count * 100 / self.goal)

    @property
    def reached(self) -> bool:
        return self.count >= self.goal


def daily_progress(
    history: Iterable[ScanRecord],
    goal: Optional[int] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> DailyProgress:
    """Count today's scans against the goal. Call again after every history change."""
    if tz is None:
        tz = resolve_timezone()
    return DailyProgress(
        count=count_today(history, now, tz),
        goal=settings.daily_scan_goal if goal is None else goal,
    )
