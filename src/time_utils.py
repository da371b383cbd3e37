"""
Duration and timestamp formatting.

All functions are pure: the current time is always passed in by the caller
(the per-card timers in order_card_ticker decide when to recompute).

Duration rule used everywhere in the application:
    >= 1 hour    -> "{h}h {m}m"      (seconds dropped)
    >= 1 minute  -> "{m}m {s}s"
    otherwise    -> "{s}s"           (zero is "0s")
"""
from datetime import datetime, timedelta
from typing import Optional, Union

NOT_AVAILABLE = "N/A"

OVERDUE_THRESHOLD = timedelta(hours=24)

# Day/month plus time, as shown on order cards and in the CSV export
DATETIME_FORMAT = "%d/%m, %H:%M:%S"
DAY_LABEL_FORMAT = "%d/%m"


def format_duration_ms(milliseconds: Union[int, float]) -> str:
    """
    Format an elapsed time in milliseconds.

    Partial seconds are truncated. Negative values are "N/A".

    Examples:
        >>> format_duration_ms(0)
        '0s'
        >>> format_duration_ms(330_000)
        '5m 30s'
        >>> format_duration_ms(3_661_000)
        '1h 1m'
    """
    if milliseconds < 0:
        return NOT_AVAILABLE

    total_seconds = int(milliseconds // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def duration_ms(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Milliseconds between two timestamps, None if either is missing or end < start."""
    if start is None or end is None:
        return None

    diff = (end - start).total_seconds() * 1000
    if diff < 0:
        return None
    return diff


def calculate_duration(start: Optional[datetime], end: Optional[datetime]) -> str:
    """
    Formatted duration between two timestamps.

    Returns "N/A" if either endpoint is missing or end is before start.
    """
    diff = duration_ms(start, end)
    if diff is None:
        return NOT_AVAILABLE
    return format_duration_ms(diff)


def elapsed(start: Optional[datetime], now: datetime) -> str:
    """Live elapsed time of an in-progress order."""
    return calculate_duration(start, now)


def is_overdue(creation_time: datetime, now: datetime,
               threshold: timedelta = OVERDUE_THRESHOLD) -> bool:
    """True when strictly more than `threshold` has passed since creation."""
    return now - creation_time > threshold


def format_datetime(value: Optional[datetime]) -> str:
    """Render a timestamp as "dd/mm, HH:MM:SS"; missing values are "N/A"."""
    if value is None:
        return NOT_AVAILABLE
    return value.strftime(DATETIME_FORMAT)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999999)
