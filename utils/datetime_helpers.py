"""Timezone-aware date/time helpers for the pavilion reservation system.

Event times are stored as venue-local text ('YYYY-MM-DD HH:MM:SS') so they
sort and compare lexicographically in SQL.
"""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'America/Detroit')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def to_local_naive(value) -> datetime:
    """
    Normalize a datetime or ISO string to a naive venue-local datetime.

    Aware values are converted to the venue timezone first; naive values
    are taken as already venue-local.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime):
        raise ValueError(f'Not a datetime: {value!r}')
    if value.tzinfo is not None:
        value = value.astimezone(get_timezone()).replace(tzinfo=None)
    return value.replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Format a datetime for storage."""
    return to_local_naive(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp into a naive venue-local datetime."""
    return datetime.strptime(value[:19], TIMESTAMP_FORMAT)


def parse_date(value) -> date:
    """Parse 'YYYY-MM-DD' (or pass through a date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def now_timestamp() -> str:
    """Current venue-local time formatted for storage."""
    return format_timestamp(get_now())


def to_aware_iso(value: str | None) -> str | None:
    """Attach the venue timezone to a stored timestamp and return ISO-8601."""
    if not value:
        return None
    return parse_timestamp(value).replace(tzinfo=get_timezone()).isoformat()
