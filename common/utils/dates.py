"""
Calendar day helpers.

Check-in days are plain "YYYY-MM-DD" strings. "Today" depends on the
timezone the group lives in, so every helper takes the zone name
explicitly instead of reading the machine clock's local zone.
"""

import zoneinfo
from datetime import date, datetime, timedelta, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string into a date."""
    return datetime.strptime(value, DATE_FORMAT).date()


def shift_date(value: str, days: int) -> str:
    """Move a YYYY-MM-DD string by a number of days (negative goes back)."""
    return (parse_date(value) + timedelta(days=days)).strftime(DATE_FORMAT)


def today_string(tz_name: str = "UTC", now: Optional[datetime] = None) -> str:
    """
    Get the current calendar day in the given timezone.

    Args:
        tz_name: IANA timezone name, e.g. "Asia/Seoul"
        now: Optional aware datetime to use instead of the clock

    Returns:
        Day string in YYYY-MM-DD format
    """
    current = now or datetime.now(timezone.utc)
    return current.astimezone(zoneinfo.ZoneInfo(tz_name)).strftime(DATE_FORMAT)


def yesterday_string(tz_name: str = "UTC", now: Optional[datetime] = None) -> str:
    """Get the calendar day before today in the given timezone."""
    return shift_date(today_string(tz_name, now), -1)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into an aware datetime.

    Naive values are treated as UTC. Returns None for missing or
    unparseable input instead of raising.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def local_date_string(value: Optional[str], tz_name: str = "UTC") -> Optional[str]:
    """Calendar day of an ISO timestamp in the given timezone."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.astimezone(zoneinfo.ZoneInfo(tz_name)).strftime(DATE_FORMAT)
