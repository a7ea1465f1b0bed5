"""Studio-local date/time helpers.

Timestamps are stored naive, in the studio's wall-clock time. Aware values
coming from clients are converted to that zone before they are used.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "America/Sao_Paulo"


def studio_tz() -> ZoneInfo:
    if has_app_context():
        return ZoneInfo(current_app.config.get("STUDIO_TIMEZONE") or DEFAULT_TIMEZONE)
    return ZoneInfo(DEFAULT_TIMEZONE)


def local_now() -> datetime:
    """Current studio wall-clock time, naive."""
    return datetime.now(studio_tz()).replace(tzinfo=None, microsecond=0)


def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(studio_tz()).replace(tzinfo=None)


def parse_datetime(value):
    """Accepts datetime objects or ISO-8601 strings ("Z" suffix allowed)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_local_naive(datetime.fromisoformat(text))


def parse_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def local_date_string(value: datetime) -> str:
    """YYYY-MM-DD of the studio-local calendar day."""
    return to_local_naive(value).strftime("%Y-%m-%d")


def duration_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def combine(day: date, at: time, minutes: int = 0) -> datetime:
    return datetime.combine(day, at) + timedelta(minutes=minutes)


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def isoformat(value):
    return value.isoformat() if value else None
