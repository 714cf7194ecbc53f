"""Helper utilities"""
import time
from datetime import date, datetime, time as dt_time, timezone
from typing import Optional, Tuple


def parse_date(date_str: str) -> date:
    """Parse YYYY-MM-DD to date"""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date: {date_str}. Use YYYY-MM-DD")


def parse_timestamp(value: str) -> datetime:
    """Parse ISO-8601 to an aware datetime; naive values are local time"""
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    return parsed.astimezone()


def day_bounds(day: Optional[date] = None) -> Tuple[datetime, datetime]:
    """Closed [start, end] of a local calendar day, as aware datetimes"""
    day = day or date.today()
    start = datetime.combine(day, dt_time.min).astimezone()
    end = datetime.combine(day, dt_time(23, 59, 59, 999000)).astimezone()
    return start, end


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def now_ms() -> int:
    """Epoch milliseconds"""
    return int(time.time() * 1000)
