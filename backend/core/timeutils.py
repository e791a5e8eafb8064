"""UTC helpers shared by the API boundary and the scheduling engine.

Everything below the routes works on naive datetimes that are implicitly UTC,
which is also how they are stored. Conversion happens once, here.
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Convert an offset-carrying datetime to naive UTC.

    Raises ValueError for naive input, since its weekday would be ambiguous.
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError('Timestamps must include a UTC offset (e.g. 2026-02-09T09:00:00Z).')
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a stored naive datetime for serialization."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


END_OF_DAY = '24:00'
MIDNIGHT = time(0, 0)


def parse_hhmm(value: str, end_of_day: bool = False) -> time:
    """Parse HH:MM. With ``end_of_day``, "24:00" is accepted and stored as 00:00."""
    normalized = value.strip()
    if end_of_day and normalized == END_OF_DAY:
        return MIDNIGHT
    parts = normalized.split(':')
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f'Time must be HH:MM (got {value!r}).')
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f'Time must be HH:MM (got {value!r}).')
    return time(hours, minutes)


def format_hhmm(value: time, end_of_day: bool = False) -> str:
    if end_of_day and value == MIDNIGHT:
        return END_OF_DAY
    return f'{value.hour:02d}:{value.minute:02d}'


def ends_after(start: time, end: time) -> bool:
    """Wall-clock order where an end of 00:00 means the following midnight."""
    return end == MIDNIGHT or end > start


def end_datetime(day: date, end: time) -> datetime:
    if end == MIDNIGHT:
        return datetime.combine(day + timedelta(days=1), MIDNIGHT)
    return datetime.combine(day, end)


def iterate_days(start: date, end: date):
    """Yield each date in ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
