"""Writes to a therapist's weekly availability and time-off."""

import logging
from datetime import datetime, time

from sqlalchemy.orm import Session

from backend.auth.identity import ROLE_THERAPIST, RequestingIdentity
from backend.core.timeutils import ends_after
from backend.models.availability import AvailabilityRecord
from backend.models.therapist import Therapist
from backend.models.time_off import TimeOff
from backend.models.weekday import Weekday
from backend.services.booking import therapist_write_guard
from backend.services.conflict_detector import find_overlapping_availability
from backend.services.errors import ErrorReason, SchedulingError

logger = logging.getLogger(__name__)


def resolve_managed_therapist(db: Session, identity: RequestingIdentity, therapist_id: int | None) -> int:
    """Therapists always act on themselves; admins must name the therapist."""
    if identity.role == ROLE_THERAPIST:
        if identity.therapist_id is None:
            raise SchedulingError(ErrorReason.FORBIDDEN, 'Therapist profile not found for this user.')
        therapist_id = identity.therapist_id
    elif identity.is_admin:
        if therapist_id is None:
            raise SchedulingError(ErrorReason.NOT_FOUND, 'therapistId is required for admin.')
    else:
        raise SchedulingError(ErrorReason.FORBIDDEN, 'Only therapists and admins can manage availability.')

    if db.query(Therapist.id).filter(Therapist.id == therapist_id).first() is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Therapist not found.')
    return therapist_id


def _check_window(start_time: time, end_time: time) -> None:
    if not ends_after(start_time, end_time):
        raise SchedulingError(ErrorReason.INVALID_TIME, 'endTime must be after startTime.')


def list_availability(db: Session, therapist_id: int) -> list[AvailabilityRecord]:
    records = db.query(AvailabilityRecord).filter(AvailabilityRecord.therapist_id == therapist_id).all()
    # Weekdays are stored by name, so order them here.
    return sorted(records, key=lambda record: (record.day_of_week, record.start_time))


def create_availability(
    db: Session,
    identity: RequestingIdentity,
    day_of_week: Weekday,
    start_time: time,
    end_time: time,
    recurring_weekly: bool = True,
    therapist_id: int | None = None,
) -> AvailabilityRecord:
    therapist_id = resolve_managed_therapist(db, identity, therapist_id)
    _check_window(start_time, end_time)

    with therapist_write_guard(db, therapist_id):
        if find_overlapping_availability(db, therapist_id, day_of_week, start_time, end_time):
            raise SchedulingError(ErrorReason.CONFLICT, 'This slot overlaps with an existing slot for the same day.')

        record = AvailabilityRecord(
            therapist_id=therapist_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            recurring_weekly=recurring_weekly,
            created_by=identity.user_id,
        )
        db.add(record)
        db.commit()
    db.refresh(record)
    logger.info('Created availability %s for therapist %s on %s', record.id, therapist_id, day_of_week.name)
    return record


def _get_managed_record(db: Session, identity: RequestingIdentity, record_id: int) -> AvailabilityRecord:
    record = db.query(AvailabilityRecord).filter(AvailabilityRecord.id == record_id).first()
    if record is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Availability not found.')
    if not identity.manages_therapist(record.therapist_id):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You can only change your own availability.')
    return record


def update_availability(
    db: Session,
    identity: RequestingIdentity,
    record_id: int,
    day_of_week: Weekday | None = None,
    start_time: time | None = None,
    end_time: time | None = None,
    recurring_weekly: bool | None = None,
) -> AvailabilityRecord:
    record = _get_managed_record(db, identity, record_id)

    day = day_of_week if day_of_week is not None else record.day_of_week
    start = start_time if start_time is not None else record.start_time
    end = end_time if end_time is not None else record.end_time
    _check_window(start, end)

    with therapist_write_guard(db, record.therapist_id):
        if find_overlapping_availability(db, record.therapist_id, day, start, end, exclude_id=record.id):
            raise SchedulingError(ErrorReason.CONFLICT, 'This slot overlaps with an existing slot for the same day.')

        record.day_of_week = day
        record.start_time = start
        record.end_time = end
        if recurring_weekly is not None:
            record.recurring_weekly = recurring_weekly
        db.commit()
    db.refresh(record)
    return record


def delete_availability(db: Session, identity: RequestingIdentity, record_id: int) -> None:
    record = _get_managed_record(db, identity, record_id)
    db.delete(record)
    db.commit()
    logger.info('Deleted availability %s', record_id)


def list_time_off(db: Session, therapist_id: int) -> list[TimeOff]:
    return db.query(TimeOff).filter(TimeOff.therapist_id == therapist_id).order_by(TimeOff.start_time.asc()).all()


def add_time_off(
    db: Session,
    identity: RequestingIdentity,
    therapist_id: int,
    start: datetime,
    end: datetime,
    reason: str | None = None,
) -> TimeOff:
    if not identity.manages_therapist(therapist_id):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You can only change your own time off.')
    if db.query(Therapist.id).filter(Therapist.id == therapist_id).first() is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Therapist not found.')
    if end <= start:
        raise SchedulingError(ErrorReason.INVALID_TIME, 'End time must be after start time.')

    time_off = TimeOff(therapist_id=therapist_id, start_time=start, end_time=end, reason=reason)
    db.add(time_off)
    db.commit()
    db.refresh(time_off)
    logger.info('Added time off %s for therapist %s', time_off.id, therapist_id)
    return time_off


def remove_time_off(db: Session, identity: RequestingIdentity, therapist_id: int, time_off_id: int) -> None:
    if not identity.manages_therapist(therapist_id):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You can only change your own time off.')

    time_off = db.query(TimeOff).filter(
        TimeOff.id == time_off_id,
        TimeOff.therapist_id == therapist_id,
    ).first()
    if time_off is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Time off not found.')

    db.delete(time_off)
    db.commit()
