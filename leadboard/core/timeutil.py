"""LeadBoard — Regional Time Helpers.

Lead timestamps are stored naive, in the business's regional time
(fixed UTC-03:00, no daylight saving).
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

REGIONAL_TZ = timezone(timedelta(hours=-3))
DATE_FORMAT = "%Y-%m-%d"


def today_local() -> date:
    """Current calendar date in regional time."""
    return datetime.now(REGIONAL_TZ).date()


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string; return None when missing or invalid."""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError:
        return None


def next_day(day: date) -> date:
    return day + timedelta(days=1)


def day_window(day: date) -> tuple[datetime, datetime]:
    """Naive regional [start, end) bounds for one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def day_unix_bounds(day: date) -> tuple[int, int]:
    """Unix seconds for 00:00:00 and 23:59:59 of a regional day, inclusive."""
    start = datetime.combine(day, time.min, tzinfo=REGIONAL_TZ)
    end = datetime.combine(day, time(23, 59, 59), tzinfo=REGIONAL_TZ)
    return int(start.timestamp()), int(end.timestamp())


def to_regional_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive regional time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(REGIONAL_TZ).replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp into naive regional time.

    Values without an offset are already regional. Raises ValueError when
    the string is not ISO 8601.
    """
    text = value.strip().replace(" ", "T", 1)
    return to_regional_naive(datetime.fromisoformat(text))


def iso_utc_from_unix(seconds: int) -> str:
    """Unix seconds → ``YYYY-MM-DDTHH:MM:SS.000Z``."""
    moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
