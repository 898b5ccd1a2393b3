"""
Exchange Time Helpers

All session math (time to close, trading window, 0DTE detection) runs in
exchange local time (America/New_York). Naive datetimes are taken to be
exchange local already; aware datetimes are converted.
"""

from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo

MARKET_TZ = "America/New_York"
MARKET_OPEN = time(9, 30)         # 9:30 AM ET
MARKET_CLOSE = time(16, 0)        # 4:00 PM ET


def to_market_time(moment: Optional[datetime] = None, tz: str = MARKET_TZ) -> datetime:
    """Return an aware datetime in exchange local time (now when moment is None)."""
    zone = ZoneInfo(tz)
    if moment is None:
        return datetime.now(zone)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=zone)
    return moment.astimezone(zone)


def session_close(day: date, tz: str = MARKET_TZ) -> datetime:
    return datetime.combine(day, MARKET_CLOSE, tzinfo=ZoneInfo(tz))


def hours_until_close(moment: Optional[datetime] = None, tz: str = MARKET_TZ) -> float:
    """Hours from moment until 16:00 on the same exchange day (never negative)."""
    local = to_market_time(moment, tz)
    remaining = (session_close(local.date(), tz) - local).total_seconds() / 3600
    return max(remaining, 0.0)


def parse_day(value: str) -> Optional[date]:
    """Parse the YYYY-MM-DD prefix of a date/expiration string."""
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'."""
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
