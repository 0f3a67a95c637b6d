"""Market session gate for automatic updates."""

from datetime import datetime, timezone
from typing import Tuple, Union
from zoneinfo import ZoneInfo

from config import Config

# Monday=0 ... Sunday=6
WEEKEND_DAYS = (5, 6)


def close_buffer_minutes(refresh_interval_minutes: int) -> int:
    """Buffer added after the close so a cycle started just before 16:00 still runs."""
    return int(refresh_interval_minutes) + 1


def is_market_open(
    now: datetime,
    tz: Union[str, ZoneInfo] = Config.MARKET_TIMEZONE,
    buffer_minutes: int = 0,
    open_time: Tuple[int, int] = Config.MARKET_OPEN,
    close_time: Tuple[int, int] = Config.MARKET_CLOSE
) -> bool:
    """
    Check whether ``now`` falls inside the (buffered) trading session.

    Args:
        now: Moment to check; naive datetimes are taken as UTC
        tz: Exchange timezone name or ZoneInfo
        buffer_minutes: Minutes added after the close
        open_time: (hour, minute) of the open, local exchange time
        close_time: (hour, minute) of the close, local exchange time

    Returns:
        True on a weekday between the open and close + buffer, both inclusive
    """
    zone = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(zone)

    if local.weekday() in WEEKEND_DAYS:
        return False

    current_minutes = local.hour * 60 + local.minute
    open_minutes = open_time[0] * 60 + open_time[1]
    close_minutes = close_time[0] * 60 + close_time[1] + buffer_minutes

    return open_minutes <= current_minutes <= close_minutes
