from __future__ import annotations

from datetime import datetime, timezone


def ensure_utc(moment: datetime) -> datetime:
    """Treats naive datetimes as UTC; some drivers drop tzinfo on read."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def hours_between(earlier: datetime, later: datetime) -> float:
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600
