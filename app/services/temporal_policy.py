# app/services/temporal_policy.py
"""
Calendar rules for gate access.
Basic-tier employees are restricted on the first Thursday of every month.

Day-based rules run on the facility's wall clock (settings.TIMEZONE), not UTC.
Timestamps are stored as naive local datetimes.
"""

from datetime import date, datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo

from app.config import settings

THURSDAY = 3   # date.weekday()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Current facility-local time as a naive datetime."""
    return _utc_now().astimezone(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)


def is_restricted_day(day: Union[date, datetime]) -> bool:
    """True iff ``day`` is the first Thursday of its calendar month."""
    if isinstance(day, datetime):
        day = day.date()
    # The first Thursday always falls within days 1-7
    return day.weekday() == THURSDAY and day.day <= 7
