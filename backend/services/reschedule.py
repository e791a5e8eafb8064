"""Two-phase move of an existing session: a read-only check and an apply.

Both phases run the same validation. ``apply_reschedule`` never relies on an
earlier ``check_reschedule`` result, since time passes and other bookings may
land in between.
"""

import logging
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth.identity import RequestingIdentity
from backend.core.timeutils import utc_now
from backend.models.session import SESSION_STATUS_CANCELLED, SESSION_STATUS_SCHEDULED, TherapySession
from backend.services.booking import therapist_write_guard, validate_slot
from backend.services.errors import ErrorReason, SchedulingError

logger = logging.getLogger(__name__)


class RescheduleCheck(BaseModel):
    allowed: bool
    reason: ErrorReason | None = None
    message: str | None = None


def validate_reschedule(
    db: Session,
    session_id: int,
    new_start: datetime,
    new_end: datetime,
    identity: RequestingIdentity,
    now: datetime | None = None,
) -> TherapySession:
    if new_end <= new_start:
        raise SchedulingError(ErrorReason.INVALID_TIME, 'End time must be after start time.')

    now = now or utc_now()
    if new_start <= now:
        raise SchedulingError(ErrorReason.PAST, 'Cannot reschedule to a time in the past.')

    existing = db.query(TherapySession).filter(TherapySession.id == session_id).first()
    if existing is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Session not found.')

    if existing.status != SESSION_STATUS_SCHEDULED:
        message = (
            'Cancelled sessions cannot be rescheduled.'
            if existing.status == SESSION_STATUS_CANCELLED
            else 'Only scheduled sessions can be rescheduled.'
        )
        raise SchedulingError(ErrorReason.INVALID_STATUS, message)

    if not identity.owns_session(existing):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You do not have permission to reschedule this session.')

    validate_slot(
        db,
        existing.therapist_id,
        existing.client_id,
        new_start,
        new_end,
        exclude_session_id=existing.id,
    )
    return existing


def check_reschedule(
    db: Session,
    session_id: int,
    new_start: datetime,
    new_end: datetime,
    identity: RequestingIdentity,
    now: datetime | None = None,
) -> RescheduleCheck:
    try:
        validate_reschedule(db, session_id, new_start, new_end, identity, now=now)
    except SchedulingError as exc:
        logger.debug('Reschedule check for session %s rejected: %s', session_id, exc.reason.value)
        return RescheduleCheck(allowed=False, reason=exc.reason, message=exc.message)
    return RescheduleCheck(allowed=True)


def apply_reschedule(
    db: Session,
    session_id: int,
    new_start: datetime,
    new_end: datetime,
    identity: RequestingIdentity,
    now: datetime | None = None,
) -> TherapySession:
    """Move the session to ``[new_start, new_end)`` or raise, leaving it untouched."""
    existing = db.query(TherapySession.therapist_id).filter(TherapySession.id == session_id).first()
    if existing is None:
        # Let validation produce the ordered rejection (INVALID_TIME/PAST before NOT_FOUND).
        validate_reschedule(db, session_id, new_start, new_end, identity, now=now)

    with therapist_write_guard(db, existing.therapist_id):
        session = validate_reschedule(db, session_id, new_start, new_end, identity, now=now)
        old_start = session.start_time
        session.start_time = new_start
        session.end_time = new_end
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning('Unique slot guard rejected reschedule of session %s', session_id)
            raise SchedulingError(ErrorReason.CONFLICT, 'Slot already booked.') from exc

    db.refresh(session)
    logger.info(
        'Rescheduled session %s from %s to %s-%s',
        session.id, old_start.isoformat(), new_start.isoformat(), new_end.isoformat(),
    )
    return session
