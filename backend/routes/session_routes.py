import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_identity
from backend.auth.identity import RequestingIdentity
from backend.core import config
from backend.core.timeutils import as_utc
from backend.database import get_db
from backend.models.session import SESSION_STATUSES, TherapySession
from backend.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error, utc_instant
from backend.services import booking, reschedule, session_status
from backend.services.errors import SchedulingError

router = APIRouter(tags=['sessions'])

logger = logging.getLogger(__name__)


class CreateSessionRequest(BaseModel):
    therapist_id: int
    start_time: datetime
    end_time: datetime
    notes: str | None = None
    client_id: int | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_NOTES_LENGTH} characters or fewer.')

        return normalized


class RescheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class UpdateStatusRequest(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SESSION_STATUSES:
            raise ValueError('status must be one of: scheduled, cancelled, completed')
        return normalized


class SessionResponse(BaseModel):
    id: int
    therapist_id: int
    client_id: int
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None


class RescheduleCheckResponse(BaseModel):
    allowed: bool
    reason: str | None = None
    message: str | None = None


def to_session_response(session: TherapySession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        therapist_id=session.therapist_id,
        client_id=session.client_id,
        start_time=as_utc(session.start_time),
        end_time=as_utc(session.end_time),
        status=session.status,
        notes=session.notes,
    )


@router.get('', response_model=list[SessionResponse])
def list_sessions(
    status_filter: str | None = Query(default=None, alias='status'),
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        sessions = session_status.list_sessions(db, identity, status=status_filter)
        return [to_session_response(session) for session in sessions]
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{session_id}', response_model=SessionResponse)
def get_session(
    session_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return to_session_response(session_status.get_session(db, session_id, identity))
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def book_session(
    data: CreateSessionRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        session = booking.book_session(
            db,
            identity,
            therapist_id=data.therapist_id,
            start=utc_instant(data.start_time, 'start_time'),
            end=utc_instant(data.end_time, 'end_time'),
            notes=data.notes,
            client_id=data.client_id,
        )
        return to_session_response(session)
    except SchedulingError as exc:
        logger.debug('Booking rejected for therapist %s: %s', data.therapist_id, exc.reason.value)
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Booking failed for therapist %s', data.therapist_id)
        raise database_unavailable() from exc


@router.post('/{session_id}/reschedule-check', response_model=RescheduleCheckResponse)
def check_reschedule(
    session_id: int,
    data: RescheduleRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = reschedule.check_reschedule(
            db,
            session_id,
            utc_instant(data.start_time, 'start_time'),
            utc_instant(data.end_time, 'end_time'),
            identity,
        )
    except SchedulingError as exc:
        result = reschedule.RescheduleCheck(allowed=False, reason=exc.reason, message=exc.message)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return RescheduleCheckResponse(
        allowed=result.allowed,
        reason=result.reason.value if result.reason else None,
        message=result.message,
    )


@router.patch('/{session_id}/reschedule', response_model=SessionResponse)
def apply_reschedule(
    session_id: int,
    data: RescheduleRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        session = reschedule.apply_reschedule(
            db,
            session_id,
            utc_instant(data.start_time, 'start_time'),
            utc_instant(data.end_time, 'end_time'),
            identity,
        )
        return to_session_response(session)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Reschedule failed for session %s', session_id)
        raise database_unavailable() from exc


@router.post('/{session_id}/cancel', response_model=SessionResponse)
def cancel_session(
    session_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return to_session_response(session_status.cancel_session(db, session_id, identity))
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{session_id}/status', response_model=SessionResponse)
def update_session_status(
    session_id: int,
    data: UpdateStatusRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        session = session_status.update_session_status(db, session_id, data.status, identity)
        return to_session_response(session)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{session_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        session_status.delete_session(db, session_id, identity)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
