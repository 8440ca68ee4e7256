"""
Date and rounding helpers shared by the analyzers
"""

import math
from datetime import datetime, timedelta

import pandas as pd

SECONDS_PER_DAY = 24 * 60 * 60


def round_half_up(value: float) -> int:
    """Round halves away from zero for positives (2.5 -> 3), unlike round()"""
    return int(math.floor(value + 0.5))


def ceil_days(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up (negative when end is earlier)"""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def months_before(now: datetime, months: int) -> datetime:
    """Calendar month offset, clipped to the end of shorter months"""
    return (pd.Timestamp(now) - pd.DateOffset(months=months)).to_pydatetime()


def months_after(now: datetime, months: int) -> datetime:
    return (pd.Timestamp(now) + pd.DateOffset(months=months)).to_pydatetime()


def add_days(now: datetime, days: int) -> datetime:
    return now + timedelta(days=days)


def month_key(value: datetime) -> str:
    """YYYY-MM bucket key"""
    return value.strftime("%Y-%m")


def as_naive_utc(value: datetime) -> datetime:
    """Timezone-aware values become naive UTC; naive values pass through"""
    timestamp = pd.Timestamp(value)
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert("UTC").tz_localize(None)
    return timestamp.to_pydatetime()
