"""
Time rules and conversion helpers.
Handles the ±30min tolerance window, minute deviations, and organization-local
calendar days. Everything stored in the database is UTC.
"""
import math
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
import pytz
from ..config import settings


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC. Used as a FastAPI dependency."""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.
    Naive values are assumed to already be UTC (SQLite drops tzinfo on read).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def is_valid_timezone(timezone_str: str) -> bool:
    return timezone_str in pytz.all_timezones_set


def js_round(value: float) -> int:
    """Round half toward +infinity, matching the rounding clients already display."""
    return int(math.floor(value + 0.5))


def deviation_minutes(actual_time: datetime, expected_time: datetime) -> int:
    """
    Signed minute difference between an actual and a planned instant.
    Positive when the actual time is after the planned one.
    """
    delta = ensure_utc(actual_time) - ensure_utc(expected_time)
    return js_round(delta.total_seconds() / 60)


def exceeds_warning_threshold(deviation: Optional[int], threshold_minutes: Optional[int] = None) -> bool:
    if threshold_minutes is None:
        threshold_minutes = settings.deviation_warning_min
    if deviation is None:
        return False
    return abs(deviation) > threshold_minutes


def is_within_tolerance(
    actual_time: datetime,
    expected_time: datetime,
    tolerance_minutes: Optional[int] = None
) -> bool:
    """
    Check if actual time is within tolerance window of expected time.

    Args:
        actual_time: Actual time (UTC, timezone-aware or naive)
        expected_time: Expected time (UTC, timezone-aware or naive)
        tolerance_minutes: Tolerance in minutes (default from settings)

    Returns:
        True if within tolerance (bounds inclusive)
    """
    if tolerance_minutes is None:
        tolerance_minutes = settings.tolerance_window_min

    window = timedelta(minutes=tolerance_minutes)
    actual_time = ensure_utc(actual_time)
    expected_time = ensure_utc(expected_time)
    return actual_time - window <= expected_time <= actual_time + window


def local_to_utc(local_datetime: datetime, timezone_str: str) -> datetime:
    """
    Convert local datetime to UTC.

    Args:
        local_datetime: Local datetime (naive, or aware in any zone)
        timezone_str: Timezone string (e.g., "America/Vancouver")

    Returns:
        UTC datetime (timezone-aware)
    """
    if local_datetime.tzinfo is not None:
        return local_datetime.astimezone(pytz.UTC)
    tz = pytz.timezone(timezone_str)
    return tz.localize(local_datetime).astimezone(pytz.UTC)


def utc_to_local(utc_datetime: datetime, timezone_str: str) -> datetime:
    """Convert a UTC datetime to the given timezone (timezone-aware)."""
    tz = pytz.timezone(timezone_str)
    return ensure_utc(utc_datetime).astimezone(tz)


def combine_date_time(date_val: date, time_val: time, timezone_str: str) -> datetime:
    """Combine a local date and wall-clock time into a UTC datetime."""
    return local_to_utc(datetime.combine(date_val, time_val), timezone_str)


def local_day_bounds(instant: datetime, timezone_str: str) -> Tuple[datetime, datetime]:
    """
    UTC bounds [start, end) of the local calendar day containing ``instant``.
    DST days are 23 or 25 hours long, so the end is computed from the next
    local midnight rather than start + 24h.
    """
    local_day = utc_to_local(instant, timezone_str).date()
    start = combine_date_time(local_day, time.min, timezone_str)
    end = combine_date_time(local_day + timedelta(days=1), time.min, timezone_str)
    return start, end


def end_of_local_day(instant: datetime, timezone_str: str) -> datetime:
    """23:59:59.999 local on the day of ``instant``, returned as UTC."""
    local_day = utc_to_local(instant, timezone_str).date()
    return combine_date_time(local_day, time(23, 59, 59, 999000), timezone_str)


def parse_client_datetime(value: datetime, timezone_str: str) -> datetime:
    """Datetimes from request bodies: aware values keep their offset, naive ones are organization-local."""
    return local_to_utc(value, timezone_str)


def parse_hhmm(value: str) -> time:
    """Parse a "HH:MM" (or "HH:MM:SS") wall-clock string."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    return time(hour, minute, second)
