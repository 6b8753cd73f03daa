import re
from datetime import date, datetime, time, timedelta, timezone

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def utcnow() -> datetime:
    # naive UTC, matching how timestamps are stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_hhmm(value) -> bool:
    return isinstance(value, str) and HHMM_RE.match(value) is not None


def hhmm_to_minutes(value: str) -> int:
    hour_str, minute_str = value.split(":")
    return int(hour_str) * 60 + int(minute_str)


def slot_start(day: date, start_time: str) -> datetime:
    hour, minute = divmod(hhmm_to_minutes(start_time), 60)
    return datetime.combine(day, time(hour, minute))


def hours_until(moment: datetime, now: datetime) -> float:
    return (moment - now).total_seconds() / 3600


def week_bounds(day: date):
    """Monday and Sunday of the ISO week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    # HH:mm strings compare correctly as text
    return start_a < end_b and end_a > start_b
