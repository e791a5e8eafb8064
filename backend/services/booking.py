"""Atomic booking of a new session.

Check and insert run as one unit per therapist: an in-process lock keyed by
therapist id serializes request threads, the therapist row is locked with
``SELECT ... FOR UPDATE`` so other processes on a database that supports it
wait as well, and the partial unique index on scheduled sessions turns any
race that still slips through into a ``CONFLICT``.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from threading import Lock

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth.identity import ROLE_ADMIN, ROLE_CLIENT, RequestingIdentity
from backend.models.client import Client
from backend.models.session import SESSION_STATUS_SCHEDULED, TherapySession
from backend.models.therapist import Therapist
from backend.services.availability_resolver import is_within_availability
from backend.services.conflict_detector import find_conflicting_client_session, find_conflicting_session
from backend.services.errors import ErrorReason, SchedulingError

logger = logging.getLogger(__name__)

_registry_lock = Lock()
_therapist_locks: dict[int, Lock] = {}


def therapist_lock(therapist_id: int) -> Lock:
    with _registry_lock:
        lock = _therapist_locks.get(therapist_id)
        if lock is None:
            lock = Lock()
            _therapist_locks[therapist_id] = lock
        return lock


@contextmanager
def therapist_write_guard(db: Session, therapist_id: int):
    """Hold the per-therapist write lock for the duration of a check-and-commit."""
    with therapist_lock(therapist_id):
        # Row lock is a no-op on SQLite, where the in-process lock does the work.
        db.query(Therapist.id).filter(Therapist.id == therapist_id).with_for_update().first()
        try:
            yield
        except BaseException:
            db.rollback()
            raise


def resolve_booking_client_id(identity: RequestingIdentity, client_id: int | None) -> int:
    if identity.role == ROLE_CLIENT:
        if identity.client_id is None:
            raise SchedulingError(ErrorReason.FORBIDDEN, 'Not authorized to book as a client.')
        return identity.client_id
    if identity.role == ROLE_ADMIN:
        if client_id is None:
            raise SchedulingError(ErrorReason.NOT_FOUND, 'clientId is required when booking on behalf of a client.')
        return client_id
    raise SchedulingError(ErrorReason.FORBIDDEN, 'Not authorized to book as a client.')


def validate_slot(
    db: Session,
    therapist_id: int,
    client_id: int,
    start: datetime,
    end: datetime,
    exclude_session_id: int | None = None,
) -> None:
    """Availability and conflict checks shared by booking and rescheduling."""
    if not is_within_availability(db, therapist_id, start, end):
        raise SchedulingError(
            ErrorReason.NOT_IN_AVAILABILITY,
            "Requested time is not within the therapist's availability for that day.",
        )

    therapist_conflict = find_conflicting_session(db, therapist_id, start, end, exclude_session_id)
    if therapist_conflict is not None:
        logger.info(
            'Therapist %s already has session %s between %s and %s',
            therapist_id, therapist_conflict.id, start.isoformat(), end.isoformat(),
        )
        raise SchedulingError(ErrorReason.CONFLICT, 'Therapist already has a session at that time.')

    client_conflict = find_conflicting_client_session(db, client_id, start, end, exclude_session_id)
    if client_conflict is not None:
        logger.info(
            'Client %s already has session %s between %s and %s',
            client_id, client_conflict.id, start.isoformat(), end.isoformat(),
        )
        raise SchedulingError(ErrorReason.CONFLICT, 'Client already has a session at that time.')


def book_session(
    db: Session,
    identity: RequestingIdentity,
    therapist_id: int,
    start: datetime,
    end: datetime,
    notes: str | None = None,
    client_id: int | None = None,
) -> TherapySession:
    """Create a scheduled session or raise ``SchedulingError``; nothing is persisted on failure."""
    therapist = db.query(Therapist).filter(Therapist.id == therapist_id).first()
    if therapist is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Therapist not found.')

    client_id = resolve_booking_client_id(identity, client_id)
    client = db.query(Client).filter(Client.id == client_id).first()
    if client is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Client profile not found.')

    if end <= start:
        raise SchedulingError(ErrorReason.INVALID_TIME, 'End time must be after start time.')

    with therapist_write_guard(db, therapist_id):
        validate_slot(db, therapist_id, client_id, start, end)

        session = TherapySession(
            therapist_id=therapist_id,
            client_id=client_id,
            start_time=start,
            end_time=end,
            status=SESSION_STATUS_SCHEDULED,
            notes=notes,
        )
        db.add(session)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning(
                'Unique slot guard rejected booking for therapist %s at %s', therapist_id, start.isoformat(),
            )
            raise SchedulingError(ErrorReason.CONFLICT, 'Slot already booked.') from exc

    db.refresh(session)
    logger.info(
        'Booked session %s: therapist %s, client %s, %s-%s',
        session.id, therapist_id, client_id, start.isoformat(), end.isoformat(),
    )
    return session
