"""Status writes and scoped reads for sessions.

These are plain field writes outside the booking lock: a cancelled session
stops counting as busy on the very next conflict check.
"""

import logging

from sqlalchemy.orm import Session

from backend.auth.identity import ROLE_CLIENT, ROLE_THERAPIST, RequestingIdentity
from backend.models.session import (
    SESSION_STATUS_CANCELLED,
    SESSION_STATUS_COMPLETED,
    SESSION_STATUS_SCHEDULED,
    SESSION_STATUSES,
    TherapySession,
)
from backend.services.errors import ErrorReason, SchedulingError

logger = logging.getLogger(__name__)


def get_session(db: Session, session_id: int, identity: RequestingIdentity) -> TherapySession:
    session = db.query(TherapySession).filter(TherapySession.id == session_id).first()
    if session is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Session not found.')
    if not identity.owns_session(session):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You do not have access to this session.')
    return session


def list_sessions(db: Session, identity: RequestingIdentity, status: str | None = None) -> list[TherapySession]:
    query = db.query(TherapySession)
    if status is not None:
        if status not in SESSION_STATUSES:
            raise SchedulingError(ErrorReason.INVALID_STATUS, 'status must be one of: scheduled, cancelled, completed')
        query = query.filter(TherapySession.status == status)

    if identity.role == ROLE_CLIENT:
        if identity.client_id is None:
            return []
        query = query.filter(TherapySession.client_id == identity.client_id)
    elif identity.role == ROLE_THERAPIST:
        if identity.therapist_id is None:
            return []
        query = query.filter(TherapySession.therapist_id == identity.therapist_id)
    elif not identity.is_admin:
        return []

    return query.order_by(TherapySession.start_time.desc()).all()


def cancel_session(db: Session, session_id: int, identity: RequestingIdentity) -> TherapySession:
    session = get_session(db, session_id, identity)

    if session.status == SESSION_STATUS_CANCELLED:
        return session
    if session.status == SESSION_STATUS_COMPLETED:
        raise SchedulingError(ErrorReason.INVALID_STATUS, 'Completed sessions cannot be cancelled.')

    session.status = SESSION_STATUS_CANCELLED
    db.commit()
    db.refresh(session)
    logger.info('Cancelled session %s', session.id)
    return session


def complete_session(db: Session, session_id: int, identity: RequestingIdentity) -> TherapySession:
    session = get_session(db, session_id, identity)
    if identity.role == ROLE_CLIENT:
        raise SchedulingError(ErrorReason.FORBIDDEN, 'Clients can only cancel their session.')

    if session.status == SESSION_STATUS_COMPLETED:
        return session
    if session.status != SESSION_STATUS_SCHEDULED:
        raise SchedulingError(ErrorReason.INVALID_STATUS, 'Only scheduled sessions can be completed.')

    session.status = SESSION_STATUS_COMPLETED
    db.commit()
    db.refresh(session)
    logger.info('Completed session %s', session.id)
    return session


def update_session_status(db: Session, session_id: int, status: str, identity: RequestingIdentity) -> TherapySession:
    if status == SESSION_STATUS_CANCELLED:
        return cancel_session(db, session_id, identity)
    if status == SESSION_STATUS_COMPLETED:
        return complete_session(db, session_id, identity)
    if status == SESSION_STATUS_SCHEDULED:
        session = get_session(db, session_id, identity)
        if session.status != SESSION_STATUS_SCHEDULED:
            raise SchedulingError(ErrorReason.INVALID_STATUS, 'Cancelled and completed sessions are final.')
        return session
    raise SchedulingError(ErrorReason.INVALID_STATUS, 'status must be one of: scheduled, cancelled, completed')


def delete_session(db: Session, session_id: int, identity: RequestingIdentity) -> None:
    """Administrative hard delete."""
    if not identity.is_admin:
        raise SchedulingError(ErrorReason.FORBIDDEN, 'Only admins can delete sessions.')

    session = db.query(TherapySession).filter(TherapySession.id == session_id).first()
    if session is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Session not found.')

    db.delete(session)
    db.commit()
    logger.warning('Hard-deleted session %s', session_id)
