from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical). All stored timestamps use this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: Optional[datetime] = None) -> datetime:
    """Midnight (UTC-naive) of the given day; today when omitted."""
    return (dt or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)


def compact_date(dt: Optional[datetime] = None) -> str:
    """YYYYMMDD of the given UTC datetime; used in transaction codes."""
    return (dt or utcnow()).strftime("%Y%m%d")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO-8601 at second precision with a trailing 'Z'.
    Naive values are UTC by convention.
    """
    if dt is None:
        return None
    aware = dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)
    return aware.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
