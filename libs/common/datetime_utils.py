"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """Return the UTC instant ``days`` days before ``now``."""
    return (now or utc_now()) - timedelta(days=days)


def two_digit_year_month(now: Optional[datetime] = None) -> tuple[int, int]:
    """Return ``(YY, MM)`` for card expiry comparisons, e.g. ``(26, 10)``."""
    now = now or utc_now()
    return now.year % 100, now.month
