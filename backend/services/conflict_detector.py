"""Overlap checks against active sessions and availability records."""

from datetime import date, datetime, time

from sqlalchemy.orm import Session

from backend.core.timeutils import ends_after
from backend.models.availability import AvailabilityRecord
from backend.models.session import SESSION_STATUS_CANCELLED, TherapySession
from backend.models.weekday import Weekday
from backend.services.interval_math import Interval, overlaps
from backend.services.slot_types import TimeRange


def _active_overlapping(db: Session, start: datetime, end: datetime, exclude_session_id: int | None):
    # overlap rule: existing.start < end AND existing.end > start
    query = db.query(TherapySession).filter(
        TherapySession.status != SESSION_STATUS_CANCELLED,
        TherapySession.start_time < end,
        TherapySession.end_time > start,
    )
    if exclude_session_id is not None:
        query = query.filter(TherapySession.id != exclude_session_id)
    return query


def find_conflicting_session(
    db: Session,
    therapist_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: int | None = None,
) -> TherapySession | None:
    return _active_overlapping(db, start, end, exclude_session_id).filter(
        TherapySession.therapist_id == therapist_id,
    ).order_by(TherapySession.start_time.asc()).first()


def find_conflicting_client_session(
    db: Session,
    client_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: int | None = None,
) -> TherapySession | None:
    return _active_overlapping(db, start, end, exclude_session_id).filter(
        TherapySession.client_id == client_id,
    ).order_by(TherapySession.start_time.asc()).first()


def has_conflict(
    db: Session,
    therapist_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: int | None = None,
) -> bool:
    return find_conflicting_session(db, therapist_id, start, end, exclude_session_id) is not None


def has_client_conflict(
    db: Session,
    client_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: int | None = None,
) -> bool:
    return find_conflicting_client_session(db, client_id, start, end, exclude_session_id) is not None


def active_session_intervals(
    db: Session,
    range_start: datetime,
    range_end: datetime,
    therapist_id: int | None = None,
    client_id: int | None = None,
) -> list[Interval]:
    """Busy intervals for a therapist and/or client within a range."""
    if therapist_id is None and client_id is None:
        return []

    query = db.query(TherapySession.start_time, TherapySession.end_time).filter(
        TherapySession.status != SESSION_STATUS_CANCELLED,
        TherapySession.start_time < range_end,
        TherapySession.end_time > range_start,
    )
    if therapist_id is not None and client_id is not None:
        query = query.filter(
            (TherapySession.therapist_id == therapist_id) | (TherapySession.client_id == client_id)
        )
    elif therapist_id is not None:
        query = query.filter(TherapySession.therapist_id == therapist_id)
    else:
        query = query.filter(TherapySession.client_id == client_id)

    return [
        Interval(start=start, end=end)
        for start, end in query.order_by(TherapySession.start_time.asc()).all()
        if end > start
    ]


def find_overlapping_availability(
    db: Session,
    therapist_id: int,
    weekday: Weekday,
    start_time: time,
    end_time: time,
    exclude_id: int | None = None,
) -> list[AvailabilityRecord]:
    """Availability records on the same weekday whose window overlaps ``[start_time, end_time)``."""
    query = db.query(AvailabilityRecord).filter(
        AvailabilityRecord.therapist_id == therapist_id,
        AvailabilityRecord.day_of_week == weekday,
    )
    if exclude_id is not None:
        query = query.filter(AvailabilityRecord.id != exclude_id)

    # Any date works for comparing two windows of the same weekday.
    reference_day = date(2000, 1, 3)
    proposed = TimeRange(start=start_time, end=end_time).on(reference_day)
    return [
        record for record in query.all()
        if ends_after(record.start_time, record.end_time)
        and overlaps(TimeRange(start=record.start_time, end=record.end_time).on(reference_day), proposed)
    ]
