"""Turns recurring weekly availability into concrete UTC windows for a date."""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from backend.core.timeutils import end_datetime, ends_after
from backend.models.availability import AvailabilityRecord
from backend.models.time_off import TimeOff
from backend.models.weekday import Weekday
from backend.services.interval_math import Interval, contains, overlaps

logger = logging.getLogger(__name__)


def get_time_off(db: Session, therapist_id: int, range_start: datetime, range_end: datetime) -> list[Interval]:
    rows = db.query(TimeOff.start_time, TimeOff.end_time).filter(
        TimeOff.therapist_id == therapist_id,
        TimeOff.start_time < range_end,
        TimeOff.end_time > range_start,
    ).order_by(TimeOff.start_time.asc()).all()
    return [Interval(start=start, end=end) for start, end in rows if end > start]


def blocks_for_weekday(db: Session, therapist_id: int, weekday: Weekday) -> list[AvailabilityRecord]:
    return db.query(AvailabilityRecord).filter(
        AvailabilityRecord.therapist_id == therapist_id,
        AvailabilityRecord.day_of_week == weekday,
    ).order_by(AvailabilityRecord.start_time.asc(), AvailabilityRecord.end_time.asc()).all()


def block_interval(day: date, block: AvailabilityRecord) -> Interval | None:
    if not ends_after(block.start_time, block.end_time):
        return None
    return Interval(start=datetime.combine(day, block.start_time), end=end_datetime(day, block.end_time))


def resolve_availability(
    db: Session,
    therapist_id: int,
    day: date,
    time_off: list[Interval] | None = None,
) -> list[Interval]:
    """Return the therapist's availability windows on ``day``, ordered by start.

    Blocks come from the availability records for the date's weekday. A block
    that lies entirely inside a time-off interval is dropped; partial
    time-off is left for the slot and booking checks to apply. Overlapping
    source blocks are not merged.
    """
    if time_off is None:
        day_start = datetime.combine(day, datetime.min.time())
        time_off = get_time_off(db, therapist_id, day_start, day_start + timedelta(days=1))

    resolved: list[Interval] = []
    for block in blocks_for_weekday(db, therapist_id, Weekday.of(day)):
        interval = block_interval(day, block)
        if interval is None:
            logger.warning('Skipping inverted availability record %s for therapist %s', block.id, therapist_id)
            continue
        if any(contains(off, interval) for off in time_off):
            continue
        resolved.append(interval)

    return resolved


def is_within_availability(db: Session, therapist_id: int, start: datetime, end: datetime) -> bool:
    """True when ``[start, end)`` sits inside one resolved window and clear of all time-off."""
    proposed = Interval(start=start, end=end)
    time_off = get_time_off(db, therapist_id, start, end)
    if any(overlaps(off, proposed) for off in time_off):
        return False

    availability = resolve_availability(db, therapist_id, start.date(), time_off=time_off)
    return any(contains(window, proposed) for window in availability)
